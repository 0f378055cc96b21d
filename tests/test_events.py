from showcase.events import CONFIG_CHANGED, PROMPTS_CHANGED, ConfigChangedPayload, EventBus


def test_listener_receives_payload():
    bus = EventBus()
    received = []
    bus.on_config_changed(received.append)

    payload = ConfigChangedPayload(source="admin-settings", note="openaiModel")
    bus.emit_config_changed(payload)

    assert received == [payload]
    assert received[0].at > 0


def test_topics_are_independent():
    bus = EventBus()
    configs, prompts = [], []
    bus.on_config_changed(configs.append)
    bus.on_prompts_changed(prompts.append)

    bus.emit_prompts_changed(ConfigChangedPayload(source="prompt-manager"))

    assert configs == []
    assert len(prompts) == 1


def test_unsubscribe_stops_delivery():
    bus = EventBus()
    received = []
    unsubscribe = bus.on(CONFIG_CHANGED, received.append)
    unsubscribe()
    unsubscribe()

    bus.emit(CONFIG_CHANGED, ConfigChangedPayload(source="system"))

    assert received == []
    assert bus.listener_count(CONFIG_CHANGED) == 0


def test_failing_listener_does_not_reach_emitter_or_block_others():
    bus = EventBus()
    received = []

    def broken(_payload):
        raise RuntimeError("listener bug")

    bus.on(PROMPTS_CHANGED, broken)
    bus.on(PROMPTS_CHANGED, received.append)

    bus.emit_prompts_changed(ConfigChangedPayload(source="prompt-manager"))

    assert len(received) == 1
