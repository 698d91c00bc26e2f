"""Contract for the content platform behind the core tools.

The router never touches posts, spaces or AI completions directly; the core
tool handlers validate arguments and hand the work to a backend with this
shape. Methods return ``None`` when the addressed item does not exist.
"""

from __future__ import annotations

from typing import Any, Protocol


class ContentBackend(Protocol):
    async def find(self, query: dict[str, Any], caller_id: int) -> Any: ...

    async def save(self, publication: dict[str, Any], caller_id: int) -> dict[str, Any] | None: ...

    async def run(self, request: dict[str, Any], caller_id: int) -> dict[str, Any] | None: ...

    async def assist(self, request: dict[str, Any], caller_id: int) -> dict[str, Any]: ...

    async def attach_image(
        self, publication_id: int, image: dict[str, Any], caller_id: int
    ) -> dict[str, Any] | None: ...

    async def me(self, action: str, params: dict[str, Any], caller_id: int) -> Any: ...
