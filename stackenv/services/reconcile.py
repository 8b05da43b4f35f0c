"""Reconcile store and .env file variables into one view, and resolve masked secrets."""

import logging
from collections.abc import Iterable, Mapping

from stackenv.models import MASK_PLACEHOLDER, Variable, ViewSource

logger = logging.getLogger(__name__)

# (is_secret, in_store, in_file, values_equal) -> source of the displayed value.
# A secret never shows the file's value. A plain value that differs between
# the store and the file shows the file's.
_PRECEDENCE: dict[tuple[bool, bool, bool, bool], ViewSource] = {
    (True, True, True, True): ViewSource.SECRET,
    (True, True, True, False): ViewSource.SECRET,
    (True, True, False, False): ViewSource.SECRET,
    (False, True, True, True): ViewSource.STORE,
    (False, True, True, False): ViewSource.FILE,
    (False, True, False, False): ViewSource.STORE,
    (False, False, True, False): ViewSource.FILE,
}


def resolve_source(is_secret: bool, in_store: bool, in_file: bool, values_equal: bool) -> ViewSource:
    """Look up which source a key's displayed value comes from."""
    try:
        return _PRECEDENCE[(is_secret, in_store, in_file, values_equal)]
    except KeyError:
        raise ValueError(
            f"No precedence rule for is_secret={is_secret}, in_store={in_store}, "
            f"in_file={in_file}, values_equal={values_equal}"
        ) from None


def build_view(stored: Iterable[Variable], file_vars: Mapping[str, str]) -> list[Variable]:
    """Merge store variables with parsed .env values into the externally visible list.

    ``stored`` must already be masked for display. Stored keys come first in
    store order, followed by keys found only in the file.
    """
    by_key = {v.key: v for v in stored}
    keys = list(by_key)
    keys.extend(k for k in file_vars if k not in by_key)

    view = []
    for key in keys:
        var = by_key.get(key)
        in_file = key in file_vars
        source = resolve_source(
            is_secret=var is not None and var.is_secret,
            in_store=var is not None,
            in_file=in_file,
            values_equal=var is not None and in_file and file_vars[key] == var.value,
        )
        if source is ViewSource.FILE:
            view.append(Variable(key, file_vars[key], is_secret=False))
        else:
            view.append(Variable(key, var.value, is_secret=source is ViewSource.SECRET))
    return view


def has_masked_secrets(incoming: Iterable[Variable]) -> bool:
    return any(v.is_masked for v in incoming)


def resolve_masked_secrets(
    incoming: Iterable[Variable], existing: Mapping[str, Variable]
) -> list[Variable]:
    """Replace ``***`` placeholders on secrets with their stored values.

    ``existing`` must hold unmasked values keyed by variable key. A
    placeholder with no stored secret behind it is kept literally.
    """
    resolved = []
    for var in incoming:
        if var.is_masked:
            current = existing.get(var.key)
            if current is not None and current.is_secret:
                var = Variable(var.key, current.value, is_secret=True)
            else:
                logger.warning(
                    "Secret %s was submitted as %r but has no stored value; saving placeholder as-is",
                    var.key, MASK_PLACEHOLDER,
                )
        resolved.append(var)
    return resolved
