from conftest import NODE, NS
from sriovfec.controller.controller import Controller
from sriovfec.daemon.predicates import (
    AllOf,
    EventType,
    GenerationChangedPredicate,
    ResourceNamePredicate,
    WatchEvent,
    node_event_filter,
)


def _ev(etype, name=NODE, generation=1, old=None):
    return WatchEvent(etype, NS, name, generation, old_generation=old)


def test_name_predicate_rejects_other_nodes():
    p = ResourceNamePredicate(NODE)
    assert p.admits(_ev(EventType.CREATE))
    assert not p.admits(_ev(EventType.CREATE, name="worker-2"))
    assert not p.admits(_ev(EventType.UPDATE, name="worker-2", generation=2, old=1))


def test_generation_predicate_only_filters_updates():
    p = GenerationChangedPredicate()
    assert p.admits(_ev(EventType.CREATE))
    assert p.admits(_ev(EventType.DELETE))
    assert p.admits(_ev(EventType.UPDATE, generation=2, old=1))
    assert not p.admits(_ev(EventType.UPDATE, generation=2, old=2))


def test_composed_filter_is_logical_and():
    f = node_event_filter(NODE)
    assert isinstance(f, AllOf)
    assert f.admits(_ev(EventType.UPDATE, generation=3, old=2))
    assert not f.admits(_ev(EventType.UPDATE, name="worker-2", generation=3, old=2))
    assert not f.admits(_ev(EventType.UPDATE, generation=3, old=3))


class _Reconciler:
    def __init__(self): self.keys = []
    def reconcile(self, key):
        self.keys.append(key)
        from sriovfec.daemon.reconciler import Result
        return Result()


def test_status_only_updates_never_trigger_a_second_pass():
    rec = _Reconciler()
    ctrl = Controller(rec, node_event_filter(NODE))

    assert ctrl.handle(_ev(EventType.UPDATE, generation=2, old=1))
    # two status writes by the reconciler itself
    assert not ctrl.handle(_ev(EventType.UPDATE, generation=2, old=2))
    assert not ctrl.handle(_ev(EventType.UPDATE, generation=2, old=2))

    while ctrl.process_next_item(timeout=0):
        pass
    assert len(rec.keys) == 1
