"""Validation and creation of replacement (expanded text) ads."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from adsync.ads import AdPlatform, RemoteEntity
from adsync.errors import CreationValidationError, RowValidationError
from adsync.rows import SheetRow

logger = logging.getLogger(__name__)

PREFIX = "Failed to create ETA: "


@dataclass(slots=True)
class ReplacementFields:
    campaign_id: Any
    ad_group_id: Any
    final_urls: List[Any]
    headline1: str
    headline2: str
    description: str
    path1: str = ""
    path2: str = ""
    mobile_final_urls: List[Any] = field(default_factory=list)
    tracking_template: str = ""
    custom_parameters: Optional[Any] = None

    def to_request(self) -> Dict[str, Any]:
        """Return the creation payload handed to the platform."""

        payload: Dict[str, Any] = {
            "headline1": self.headline1,
            "headline2": self.headline2,
            "description": self.description,
            "final_url": self.final_urls[0],
        }
        if self.path1:
            payload["path1"] = self.path1
            if self.path2:
                payload["path2"] = self.path2
        if self.mobile_final_urls and self.mobile_final_urls[0]:
            payload["mobile_final_url"] = self.mobile_final_urls[0]
        if self.tracking_template:
            payload["tracking_template"] = self.tracking_template
        if self.custom_parameters:
            payload["custom_parameters"] = dict(self.custom_parameters)
        return payload


@dataclass(slots=True)
class CreationOutcome:
    entity: Optional[RemoteEntity] = None
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.entity is not None and not self.errors


def is_valid_params(value: Any) -> bool:
    """Return ``True`` for ``None``/empty or a flat ``str → str`` mapping."""

    if value is None:
        return True
    if not isinstance(value, Mapping):
        return False
    return all(isinstance(key, str) and isinstance(item, str) for key, item in value.items())


def parse_replacement_fields(row: SheetRow) -> ReplacementFields:
    """Read the replacement ad attributes from ``row``.

    Raises :class:`RowValidationError` when a cell cannot be interpreted.
    """

    params_text = row.get_string("custom_parameters").strip()
    custom_parameters = None
    if params_text:
        try:
            custom_parameters = json.loads(params_text)
        except json.JSONDecodeError:
            raise RowValidationError(
                "Invalid customParameters value in spreadsheet.", field="custom_parameters"
            ) from None

    return ReplacementFields(
        campaign_id=row.get_number("campaign_id"),
        ad_group_id=row.get_number("ad_group_id"),
        final_urls=row.get_array("final_url"),
        headline1=row.get_string("headline1").strip(),
        headline2=row.get_string("headline2").strip(),
        description=row.get_string("description").strip(),
        path1=row.get_string("path1").strip(),
        path2=row.get_string("path2").strip(),
        mobile_final_urls=row.get_array("mobile_final_url"),
        tracking_template=row.get_string("tracking_template").strip(),
        custom_parameters=custom_parameters,
    )


def validate_for_creation(fields: ReplacementFields) -> List[str]:
    errors: List[str] = []
    if not fields.final_urls:
        errors.append(PREFIX + "finalUrl is missing. [Required]")
    elif len(fields.final_urls) > 1:
        errors.append(PREFIX + "finalUrl supports only a single URL")
    if not fields.headline1:
        errors.append(PREFIX + "headline1 is missing. [Required]")
    if not fields.headline2:
        errors.append(PREFIX + "headline2 is missing. [Required]")
    if not fields.description:
        errors.append(PREFIX + "description is missing. [Required]")
    if fields.path2 and not fields.path1:
        errors.append(PREFIX + "path1 is missing. Setting path2 requires path1 to be set")
    if len(fields.mobile_final_urls) > 1:
        errors.append(PREFIX + "mobileFinalURL supports only a single URL")
    if not is_valid_params(fields.custom_parameters):
        errors.append(PREFIX + "customParameters is not a valid parameters object")
    return errors


def create_replacement(row: SheetRow, platform: AdPlatform) -> CreationOutcome:
    """Validate ``row`` and create its replacement ad on ``platform``.

    Never raises for row content problems; every problem found is returned
    in :attr:`CreationOutcome.errors`.
    """

    try:
        fields = parse_replacement_fields(row)
        problems = validate_for_creation(fields)
        if problems:
            raise CreationValidationError(problems)
    except RowValidationError as exc:
        return CreationOutcome(errors=[PREFIX + str(exc)])
    except CreationValidationError as exc:
        return CreationOutcome(errors=list(exc.messages))

    try:
        parent_exists = platform.find_parent_group(fields.ad_group_id)
    except Exception as exc:
        logger.warning("Row %s: ad group lookup raised", row.row_index, exc_info=True)
        return CreationOutcome(errors=[PREFIX + str(exc)])
    if not parent_exists:
        return CreationOutcome(
            errors=[
                "Unable to create ETA because AdGroup parent with id "
                f"{fields.ad_group_id} no longer exists."
            ]
        )

    try:
        result = platform.create_entity(fields.ad_group_id, fields.to_request())
    except Exception as exc:
        logger.warning("Row %s: ETA creation raised", row.row_index, exc_info=True)
        return CreationOutcome(errors=[PREFIX + str(exc)])

    if not result.success or result.entity is None:
        message = "Failed to create ETA with errors:"
        for error in result.errors:
            message += "\n" + str(error)
        return CreationOutcome(errors=[message])

    logger.info("Row %s: created ETA %s", row.row_index, result.entity.get_id())
    return CreationOutcome(entity=result.entity)


__all__ = [
    "CreationOutcome",
    "ReplacementFields",
    "create_replacement",
    "is_valid_params",
    "parse_replacement_fields",
    "validate_for_creation",
]
