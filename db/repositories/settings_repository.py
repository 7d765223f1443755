"""
Repository for operator settings, currently the scoring weights.
"""

from __future__ import annotations

from dataclasses import fields

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.domain.analysis import Weights
from db.base import utcnow
from db.models.setting import Setting

WEIGHT_KEY_PREFIX = "weights."

WEIGHT_DESCRIPTIONS = {
    "technical": "Technical foundation weight",
    "content": "Content and structure weight",
    "structured_data": "Structured data weight",
    "performance": "Performance and CWV weight",
    "social": "Social markup weight",
}


class SettingsRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_value(self, key: str) -> str | None:
        return self._session.scalar(select(Setting.value).where(Setting.key == key))

    def set_value(self, key: str, value: str, *, description: str | None = None) -> Setting:
        setting = self._session.get(Setting, key)
        if setting is None:
            setting = Setting(key=key, value=value, description=description)
            self._session.add(setting)
        else:
            setting.value = value
            if description is not None:
                setting.description = description
        setting.updated_at = utcnow()
        self._session.flush()
        return setting

    def get_weights(self) -> Weights:
        """
        Return a weights snapshot; keys missing from the table fall back to
        the built-in defaults.
        """

        rows = self._session.execute(
            select(Setting.key, Setting.value).where(Setting.key.like(f"{WEIGHT_KEY_PREFIX}%"))
        ).all()
        stored = {key[len(WEIGHT_KEY_PREFIX):]: value for key, value in rows}

        defaults = Weights()
        values: dict[str, int] = {}
        for weight_field in fields(Weights):
            raw = stored.get(weight_field.name)
            default = getattr(defaults, weight_field.name)
            try:
                values[weight_field.name] = int(raw) if raw is not None else default
            except ValueError:
                values[weight_field.name] = default
        return Weights(**values)

    def save_weights(self, weights: Weights) -> Weights:
        for name, value in weights.as_dict().items():
            self.set_value(
                f"{WEIGHT_KEY_PREFIX}{name}",
                str(value),
                description=WEIGHT_DESCRIPTIONS.get(name),
            )
        return weights
