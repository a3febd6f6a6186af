from typing import Protocol, runtime_checkable


@runtime_checkable
class SecondFactorProvider(Protocol):
    """
    Protocol for second-factor integrations.

    The gate only needs to know whether a principal must pass a second
    factor and whether a submitted code is valid.
    """

    async def is_required(self, principal_id: str) -> bool:
        ...

    async def validate(self, principal_id: str, submitted: str) -> bool:
        ...
