import importlib
from typing import Any


def import_string(dotted_path: str) -> Any:
    """
    Import a class or attribute from a dotted path such as ``package.module.Name``.

    :raises ImportError: If the module or the attribute cannot be found.
    """
    module_path, _, attribute = dotted_path.rpartition(".")
    if not module_path:
        raise ImportError(f"{dotted_path!r} is not a dotted path")

    module = importlib.import_module(module_path)
    try:
        return getattr(module, attribute)
    except AttributeError as e:
        raise ImportError(
            f"Module {module_path!r} does not define {attribute!r}"
        ) from e
