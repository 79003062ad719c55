"""State for the five step certificate issuance wizard.

The wizard is kept in the Flask session between requests (see
``CertificateWizard.to_dict``); nothing survives a new browser session.
Re-running from step one is the recovery path for an abandoned batch.
"""

from __future__ import annotations

from typing import Callable, NamedTuple

from ..constants import (
    AI_TEMPLATE_ID,
    DELIVERY_CHANNELS,
    FIELD_IDS,
    REQUIRED_FIELD_IDS,
    TEMPLATES_BY_ID,
    WIZARD_STEP_TITLES,
)

FIRST_STEP = 1
LAST_STEP = len(WIZARD_STEP_TITLES)

SESSION_KEY = "certificate_wizard"


class BatchSelection(NamedTuple):
    event_id: str
    template_id: str
    fields: tuple[str, ...]
    channels: tuple[str, ...]
    design_id: str | None

    @property
    def uses_ai_template(self) -> bool:
        return self.template_id == AI_TEMPLATE_ID


class CertificateWizard:
    def __init__(
        self,
        event_id: str = "",
        template_id: str = "",
        selected_fields=None,
        delivery_channels=None,
        generated_image_ref: str | None = None,
        current_step: int = FIRST_STEP,
        completed: bool = False,
    ):
        self.event_id = event_id or ""
        self.template_id = template_id or ""
        self.selected_fields: set[str] = set(REQUIRED_FIELD_IDS)
        self.selected_fields.update(
            f for f in (selected_fields or ()) if f in FIELD_IDS
        )
        self.delivery_channels: set[str] = {
            c for c in (delivery_channels or ()) if c in DELIVERY_CHANNELS
        }
        self.generated_image_ref = generated_image_ref or None
        self.current_step = min(max(int(current_step or FIRST_STEP), FIRST_STEP), LAST_STEP)
        self.completed = bool(completed)

    # -- serialization -------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict | None) -> "CertificateWizard":
        data = data or {}
        return cls(
            event_id=data.get("event_id", ""),
            template_id=data.get("template_id", ""),
            selected_fields=data.get("selected_fields"),
            delivery_channels=data.get("delivery_channels"),
            generated_image_ref=data.get("generated_image_ref"),
            current_step=data.get("current_step", FIRST_STEP),
            completed=data.get("completed", False),
        )

    def to_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "template_id": self.template_id,
            "selected_fields": self.ordered_fields(),
            "delivery_channels": self.ordered_channels(),
            "generated_image_ref": self.generated_image_ref,
            "current_step": self.current_step,
            "completed": self.completed,
        }

    def ordered_fields(self) -> list[str]:
        return [f for f in FIELD_IDS if f in self.selected_fields]

    def ordered_channels(self) -> list[str]:
        return [c for c in DELIVERY_CHANNELS if c in self.delivery_channels]

    # -- selections ----------------------------------------------------

    @property
    def step_title(self) -> str:
        return WIZARD_STEP_TITLES[self.current_step - 1]

    @property
    def uses_ai_template(self) -> bool:
        return self.template_id == AI_TEMPLATE_ID

    def select_event(self, event_id: str | None) -> None:
        self.event_id = (event_id or "").strip()

    def select_template(self, template_id: str | None) -> None:
        value = (template_id or "").strip()
        if value and value not in TEMPLATES_BY_ID:
            return
        self.template_id = value

    def toggle_field(self, field_id: str, on: bool) -> None:
        if field_id not in FIELD_IDS:
            return
        if on:
            self.selected_fields.add(field_id)
        elif field_id not in REQUIRED_FIELD_IDS:
            self.selected_fields.discard(field_id)

    def toggle_channel(self, channel: str, on: bool) -> None:
        if channel not in DELIVERY_CHANNELS:
            return
        if on:
            self.delivery_channels.add(channel)
        else:
            self.delivery_channels.discard(channel)

    # -- navigation ----------------------------------------------------

    def step_complete(self, step: int | None = None) -> bool:
        step = self.current_step if step is None else step
        if step == 1:
            return bool(self.event_id)
        if step == 2:
            if not self.template_id:
                return False
            if self.uses_ai_template and not self.generated_image_ref:
                return False
            return True
        if step == 4:
            return bool(self.delivery_channels)
        return True

    def can_advance(self) -> bool:
        return self.current_step < LAST_STEP and self.step_complete()

    def advance(self) -> bool:
        if not self.can_advance():
            return False
        self.current_step += 1
        return True

    def retreat(self) -> bool:
        if self.completed or self.current_step <= FIRST_STEP:
            return False
        self.current_step -= 1
        return True

    def ready_to_generate(self) -> bool:
        return (
            self.current_step == LAST_STEP
            and not self.completed
            and all(self.step_complete(step) for step in (1, 2, 4))
        )

    def reset(self) -> None:
        self.__init__()

    def mark_completed(self) -> None:
        self.completed = True

    # -- delegates -----------------------------------------------------

    def request_image_generation(
        self, prompt: str, generate: Callable[[str], str]
    ) -> str:
        """Ask ``generate`` for a background and remember its reference.

        The delegate's exception propagates untouched and leaves any
        previously generated reference in place.
        """

        reference = generate(prompt)
        if not reference:
            raise ValueError("Design generation returned no image.")
        self.generated_image_ref = reference
        return reference

    def selection(self) -> BatchSelection:
        return BatchSelection(
            event_id=self.event_id,
            template_id=self.template_id,
            fields=tuple(self.ordered_fields()),
            channels=tuple(self.ordered_channels()),
            design_id=self.generated_image_ref,
        )
