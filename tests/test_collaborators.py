from chatsentry.moderation.collaborators import StaticAllowList, StaticConversationGate, StaticPromptSource


def test_prompt_source_set_and_clear():
    source = StaticPromptSource({1: "Check ${messageText}"})
    assert source.get_custom_prompt(1) == "Check ${messageText}"
    assert source.get_custom_prompt(2) is None

    source.set_prompt(2, "Other")
    source.set_prompt(1, None)

    assert source.get_custom_prompt(1) is None
    assert source.get_custom_prompt(2) == "Other"


def test_allow_list_add_remove():
    allow_list = StaticAllowList([10])
    allow_list.add(11)
    allow_list.remove(10)
    allow_list.remove(99)

    assert not allow_list.is_allowed(10)
    assert allow_list.is_allowed(11)


def test_gate_defaults_to_every_conversation():
    assert StaticConversationGate().is_moderated(123)


def test_gate_limits_to_listed_conversations():
    gate = StaticConversationGate([1, 2])
    assert gate.is_moderated(1)
    assert not gate.is_moderated(3)


def test_empty_gate_moderates_nothing():
    assert not StaticConversationGate([]).is_moderated(1)
