from typing import TYPE_CHECKING, Annotated, Any, TypeVar, Union, get_args, get_origin

T = TypeVar("T")

INJECTION_MARKER_NAME = "AutoGen"
"""Name the source scanner looks for; the defining module is irrelevant."""


class AutoGenMarker:
    """Metadata tag placed in ``Annotated`` by ``AutoGen[T]``."""

    def __repr__(self) -> str:
        return "AutoGenMarker()"


def _build_annotated(params: tuple[object, ...]) -> Any:
    """Return Annotated[...] with a pre-built params tuple (Py 3.10+ compatible)."""
    try:
        return Annotated.__class_getitem__(params)  # type: ignore[attr-defined]
    except AttributeError:
        return Annotated.__getitem__(params)  # type: ignore[attr-defined]


if TYPE_CHECKING:
    AutoGen = Union[T, T]  # noqa: UP007,PYI016
    """Mark a class attribute as supplied by the generated container.

    At runtime ``AutoGen[T]`` becomes ``Annotated[T, AutoGenMarker()]``.

    Examples:
        .. code-block:: python

            class UserService(ABC):
                db: AutoGen[DB | None] = None

                @abstractmethod
                def create(self, user: User) -> None: ...
    """

else:

    class AutoGen:
        """Mark a class attribute as supplied by the generated container.

        At runtime ``AutoGen[T]`` resolves to ``Annotated[T, AutoGenMarker()]``.
        """

        def __class_getitem__(cls, item: T) -> Annotated[T, AutoGenMarker]:
            if get_origin(item) is Annotated:
                args = get_args(item)
                inner = args[0]
                metadata = args[1:]
                return _build_annotated((inner, *metadata, AutoGenMarker()))
            return _build_annotated((item, AutoGenMarker()))


def is_autogen_annotation(annotation: Any) -> bool:
    """Return True when a runtime annotation carries the ``AutoGen`` tag."""
    if get_origin(annotation) is not Annotated:
        return False
    metadata = get_args(annotation)[1:]
    return any(isinstance(item, AutoGenMarker) or item is AutoGen for item in metadata)


__all__ = ["INJECTION_MARKER_NAME", "AutoGen", "AutoGenMarker", "is_autogen_annotation"]
