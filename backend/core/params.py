from typing import Annotated

from fastapi import Path

# Largest value a signed 64-bit INTEGER column can hold.
MAX_INTEGER_ID = 2**63 - 1

EntityId = Annotated[int, Path(ge=1, le=MAX_INTEGER_ID)]
