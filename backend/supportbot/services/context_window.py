"""Build the role-tagged turns sent to the language model."""
from typing import Dict, List, Sequence

from supportbot.models.message import Message, MessageSender

MAX_CONTEXT = 10

# Stored sender -> model role
ROLE_FOR_SENDER = {
    MessageSender.USER: "user",
    MessageSender.AI: "assistant",
}


def to_turns(history: Sequence[Message]) -> List[Dict[str, str]]:
    """Map stored messages to model turns, keeping their order."""
    return [
        {"role": ROLE_FOR_SENDER[msg.sender], "content": msg.content}
        for msg in history
    ]


def build_context(
    system_prompt: str,
    history: Sequence[Message],
    user_message: str
) -> List[Dict[str, str]]:
    """
    Assemble a complete model request.

    The system prompt goes first, the history (already bounded and in
    chronological order) follows, and the new user message is always last.
    The new message must not be part of `history`.
    """
    return [
        {"role": "system", "content": system_prompt},
        *to_turns(history),
        {"role": "user", "content": user_message}
    ]
