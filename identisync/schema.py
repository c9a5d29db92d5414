"""
Decoding of identity import documents.

An import file is a YAML list of identity documents:

    - profile:
        name: Jane Doe
        is_bot: false
      email:
        - jane@example.com
      enrollments:
        - organization: Acme Corp
          start: 2015-03-01
      github:
        - janedoe
      gerrit:
        - jdoe

The fixed keys (profile, email, enrollments) are decoded strictly. Every
other key names a source system and must map to a list of usernames; those
keys are not known in advance, so they are collected in a second,
permissive pass.
"""

from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .errors import MalformedInputError
from .models import Affiliation, IncomingRecord, ProfileInfo

FIXED_KEYS = ("profile", "enrollments", "email")


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def _is_str_list(v: Any) -> bool:
    return isinstance(v, list) and all(isinstance(it, str) for it in v)


def _to_datetime(value: Any) -> Optional[datetime]:
    """Accept what YAML produces for a date field; raise ValueError otherwise."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        return _to_datetime(parsed)
    raise ValueError(f"unsupported date value {value!r}")


def validate_record(data: Any) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    """
    if not isinstance(data, dict):
        return [f"Identity document must be a mapping, got {type(data).__name__}"]

    errors: List[str] = []

    profile = data.get("profile")
    if not isinstance(profile, dict):
        errors.append("Missing required field: profile")
    else:
        if not _is_non_empty_str(profile.get("name")):
            errors.append("Field 'profile.name' must be a non-empty string")
        if profile.get("is_bot") is not None and not isinstance(profile.get("is_bot"), bool):
            errors.append("Field 'profile.is_bot' must be a boolean if provided")

    emails = data.get("email")
    if emails is not None and not _is_str_list(emails):
        errors.append("Field 'email' must be a list of strings if provided")

    enrollments = data.get("enrollments")
    if enrollments is not None:
        if not isinstance(enrollments, list):
            errors.append("Field 'enrollments' must be a list if provided")
        else:
            for i, enrollment in enumerate(enrollments):
                if not isinstance(enrollment, dict):
                    errors.append(f"Enrollment #{i} must be a mapping")
                    continue
                if not _is_non_empty_str(enrollment.get("organization")):
                    errors.append(f"Enrollment #{i} without organization name")
                for bound in ("start", "end"):
                    try:
                        _to_datetime(enrollment.get(bound))
                    except ValueError:
                        errors.append(f"Enrollment #{i} field '{bound}' is not a date: {enrollment.get(bound)!r}")

    for key, value in data.items():
        if key in FIXED_KEYS:
            continue
        if not isinstance(key, str):
            errors.append(f"Source key {key!r} ({type(key).__name__}) is not a string")
        elif not isinstance(value, list):
            errors.append(f"Source '{key}' must be a list of usernames, got {type(value).__name__}")
        elif not _is_str_list(value):
            errors.append(f"Source '{key}' contains a non-string username")

    return errors


def extract_aliases(data: Dict[Any, Any]) -> Dict[str, List[str]]:
    """Second pass: every non-fixed key is a source mapped to usernames."""
    aliases: Dict[str, List[str]] = {}
    for key, value in data.items():
        if key in FIXED_KEYS:
            continue
        aliases[key] = list(value)
    return aliases


def parse_record(data: Any, position: int = 0) -> IncomingRecord:
    """
    Decode one identity document.

    Raises:
        MalformedInputError: if the document fails validation
    """
    errors = validate_record(data)
    if errors:
        raise MalformedInputError(f"Invalid identity document #{position}: " + "; ".join(errors))

    profile = data["profile"]
    affiliations = [
        Affiliation(
            organization=enrollment["organization"],
            start=_to_datetime(enrollment.get("start")),
            end=_to_datetime(enrollment.get("end")),
        )
        for enrollment in (data.get("enrollments") or [])
    ]
    return IncomingRecord(
        profile=ProfileInfo(name=profile["name"], is_bot=profile.get("is_bot")),
        emails=list(data.get("email") or []),
        aliases=extract_aliases(data),
        affiliations=affiliations,
        position=position,
    )


def _read_yaml(path: Path) -> Any:
    """Parse a YAML file; unreadable or undecodable files are malformed input."""
    try:
        with Path(path).open("r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    except OSError as e:
        raise MalformedInputError(f"Cannot read {path}: {e}")
    except UnicodeDecodeError as e:
        raise MalformedInputError(f"{path} is not valid UTF-8: {e}")
    except yaml.YAMLError as e:
        raise MalformedInputError(f"Cannot parse YAML in {path}: {e}")


def load_identities(path: Path) -> List[IncomingRecord]:
    """
    Read and decode an identities YAML file.

    Raises:
        MalformedInputError: if the file is not a YAML list or any document is invalid
    """
    raw = _read_yaml(path)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise MalformedInputError(f"{path}: top level must be a list of identity documents")
    return [parse_record(doc, position=i) for i, doc in enumerate(raw)]


def load_org_mappings(path: Path) -> List[Tuple[str, str]]:
    """
    Read organization name mappings.

    The file holds ``mappings: [[pattern, canonical name], ...]``.
    """
    raw = _read_yaml(path) or {}
    if not isinstance(raw, dict):
        raise MalformedInputError(f"{path}: expected a mapping with a 'mappings' key")
    mappings = raw.get("mappings") or []
    if not isinstance(mappings, list):
        raise MalformedInputError(f"{path}: 'mappings' must be a list")
    result: List[Tuple[str, str]] = []
    for i, pair in enumerate(mappings):
        if not (isinstance(pair, list) and len(pair) == 2 and all(isinstance(p, str) for p in pair)):
            raise MalformedInputError(f"{path}: mapping #{i} must be a [pattern, name] pair, got {pair!r}")
        result.append((pair[0], pair[1]))
    return result
