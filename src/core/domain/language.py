"""Locale utilities for eduVPN data.

Discovery feeds and system messages carry text either as a plain string or as
a `{locale tag: text}` mapping. Keeping the lookup rules here lets message
decoding, row projection and the CLI share a single source of truth.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Sequence, Union

DEFAULT_LOCALE = "en-US"

LocalizedText = Union[str, dict[str, str]]


def normalize_locale_tag(tag: str) -> str:
    """`nl_NL.UTF-8` -> `nl-nl`; used only to compare tags."""

    value = tag.strip().split(".", 1)[0].split("@", 1)[0]
    return value.replace("_", "-").casefold()


def pick_localized(variants: Mapping[str, str], preferred_locales: Sequence[str]) -> str | None:
    """Return the variant of the earliest preferred locale present in `variants`.

    An exact key match wins; otherwise the same tag written with another case
    or separator (`en_US`, `EN-us`) is accepted. No language-only fallback and
    no arbitrary pick: `None` when nothing matches.
    """

    normalized = {normalize_locale_tag(key): key for key in variants}
    for locale_tag in preferred_locales:
        if locale_tag in variants:
            return variants[locale_tag]
        key = normalized.get(normalize_locale_tag(locale_tag))
        if key is not None:
            return variants[key]
    return None


def display_text(value: LocalizedText | None, preferred_locales: Sequence[str]) -> str:
    """Best text for display names: preferred locale, then `en-US`, then any."""

    if value is None:
        return ""
    if isinstance(value, str):
        return value
    picked = pick_localized(value, [*preferred_locales, DEFAULT_LOCALE])
    if picked is not None:
        return picked
    return next(iter(value.values()), "")


def all_variants(value: LocalizedText | None) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return list(value.values())


def locales_from_environ(environ: Mapping[str, str]) -> list[str]:
    """Ranked locale preferences from `LANGUAGE`, `LC_ALL`, `LC_MESSAGES`, `LANG`.

    `C`/`POSIX` are ignored; `en-US` is always the last resort.
    """

    candidates: list[str] = []
    language = environ.get("LANGUAGE", "")
    candidates.extend(part for part in language.split(":") if part)
    for key in ("LC_ALL", "LC_MESSAGES", "LANG"):
        value = environ.get(key)
        if value:
            candidates.append(value)

    out: list[str] = []
    for raw in candidates:
        tag = raw.split(".", 1)[0].split("@", 1)[0].replace("_", "-")
        if not tag or tag.upper() in ("C", "POSIX"):
            continue
        if tag not in out:
            out.append(tag)
    if DEFAULT_LOCALE not in out:
        out.append(DEFAULT_LOCALE)
    return out


def dedupe_locales(locales: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for tag in locales:
        key = normalize_locale_tag(tag)
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(tag.strip())
    return out
