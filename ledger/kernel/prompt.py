"""
Pedidos Kernel: Prompt Parser

Parses the order-entry prompt "Name Quantity" (e.g. "Ana 2", "ana maría 10").
The trailing run of ASCII digits is the quantity; everything before it,
trimmed, is the customer name.
"""

from __future__ import annotations

import re

from ledger.kernel.types import ErrorReason, PromptResult

_PROMPT_RE = re.compile(r"^(.*?)\s*([0-9]+)$", re.DOTALL)

INVALID_FORMAT_MESSAGE = "Formato no válido. Usa 'Nombre Cantidad', ej: 'Ana 2'."
MISSING_NAME_MESSAGE = "No se pudo identificar el nombre del cliente."


def parse_prompt(text: str | None) -> PromptResult:
    """
    Parse a prompt into (name, quantity).

    Returns a PromptResult with error=INVALID_FORMAT when there is no trailing
    number or nothing is left for the name. Only the first character of the
    name is upper-cased. Quantity 0 is accepted.
    """
    prompt = str(text or "").strip()
    match = _PROMPT_RE.match(prompt)
    if not match:
        return PromptResult(error=ErrorReason.INVALID_FORMAT, message=INVALID_FORMAT_MESSAGE)

    name = match.group(1).strip()
    if not name:
        return PromptResult(error=ErrorReason.INVALID_FORMAT, message=MISSING_NAME_MESSAGE)

    return PromptResult(name=name[0].upper() + name[1:], quantity=int(match.group(2)))
