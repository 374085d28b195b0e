import pytest

from core.listener_registry import ListenerRegistry, RegistryFrozenError
from core.listeners import EntityListenerBuilder, EventListenerBuilder


def entity(*ids, name=""):
    return EntityListenerBuilder().entity_ids(*ids).call(lambda data: None).name(name).build()


def event_listener(*types):
    return EventListenerBuilder().event_types(*types).call(lambda data: None).build()


def test_lookup_preserves_registration_order():
    reg = ListenerRegistry()
    first = entity("light.a", name="first")
    second = entity("light.a", "light.b", name="second")
    reg.register_entity_listener(first)
    reg.register_entity_listener(second)

    assert reg.entity_listeners("light.a") == (first, second)
    assert reg.entity_listeners("light.b") == (second,)
    assert reg.entity_listeners("light.unknown") == ()
    assert reg.all_entity_listeners() == (first, second)
    assert reg.get_listeners_count("light.a") == 2


def test_same_instance_under_every_key():
    reg = ListenerRegistry()
    listener = entity("light.a", "light.b")
    reg.register_entity_listener(listener)
    assert reg.entity_listeners("light.a")[0] is reg.entity_listeners("light.b")[0]


def test_event_listeners_by_type():
    reg = ListenerRegistry()
    listener = event_listener("zha_event", "call_service")
    reg.register_event_listener(listener)
    assert reg.event_listeners("zha_event") == (listener,)
    assert reg.event_listeners("call_service") == (listener,)
    assert sorted(reg.event_keys()) == ["call_service", "zha_event"]
    # Поиск не создаёт пустых ключей
    reg.event_listeners("other")
    assert "other" not in reg.event_keys()


def test_wrong_listener_type_rejected():
    reg = ListenerRegistry()
    with pytest.raises(TypeError):
        reg.register_entity_listener(event_listener("zha_event"))
    with pytest.raises(TypeError):
        reg.register_event_listener(entity("light.a"))


def test_registration_after_freeze_fails():
    reg = ListenerRegistry()
    reg.register_entity_listener(entity("light.a"))
    reg.freeze()
    assert reg.frozen
    with pytest.raises(RegistryFrozenError):
        reg.register_entity_listener(entity("light.b"))
    with pytest.raises(RegistryFrozenError):
        reg.register_event_listener(event_listener("zha_event"))
    assert reg.entity_keys() == ["light.a"]
