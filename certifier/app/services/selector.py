"""
Entity selection over a directory snapshot.

``EntitySelector`` filters one immutable snapshot with a case-insensitive
substring match on each entity's display label ("first last"). It keeps
one or more independent selection slots: marriage uses ``male`` and
``female``, everything else uses ``primary``. Each slot has its own
query, chosen entity and derived fields. Selecting in one slot never
touches another.

Selecting an entity computes its derived fields immediately, against the
clock reading taken at that moment. Those values are frozen: they are not
recomputed as wall-clock time passes. Clearing a slot resets its derived
fields to the defaults.

Selection is synchronous. The only asynchronous step, fetching the
snapshot, happens before the selector is built.

``CertificateFormBase`` is the shared capability each template composes:
which slots the form has and how derived fields are computed for them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone, tzinfo
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from certifier.app.schemas.derived import EMPTY_DERIVED, DerivedFields
from certifier.app.schemas.entities import EntitySnapshot
from certifier.app.services.computation import compute_derived

logger = logging.getLogger(__name__)


Clock = Callable[[], datetime]
ComputeFn = Callable[[Optional[EntitySnapshot], date], DerivedFields]

# (slot, entity or None when cleared, derived fields, instant of change)
SelectionListener = Callable[[str, Optional[EntitySnapshot], DerivedFields, datetime], None]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SlotSpec:
    name: str
    label: str


PRIMARY_SLOT = SlotSpec("primary", "Resident")


@dataclass(frozen=True)
class SelectorOption:
    value: str
    label: str
    entity: EntitySnapshot


class SelectionSlot:
    """Mutable state of one selection slot."""

    def __init__(self, spec: SlotSpec) -> None:
        self.spec = spec
        self.query = ""
        self.entity: Optional[EntitySnapshot] = None
        self.derived: DerivedFields = EMPTY_DERIVED
        self.selected_at: Optional[datetime] = None

    def reset(self) -> None:
        self.entity = None
        self.derived = EMPTY_DERIVED
        self.selected_at = None


class EntitySelector:
    def __init__(
        self,
        entities: Sequence[EntitySnapshot],
        slots: Sequence[SlotSpec] = (PRIMARY_SLOT,),
        *,
        compute: ComputeFn = compute_derived,
        clock: Clock = utc_now,
        tz: tzinfo = timezone.utc,
        listener: Optional[SelectionListener] = None,
    ) -> None:
        if not slots:
            raise ValueError("EntitySelector requires at least one slot")

        names = [spec.name for spec in slots]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate selection slot names: {names}")

        self._options: Tuple[SelectorOption, ...] = tuple(
            SelectorOption(
                value=entity.display_label.lower(),
                label=entity.display_label,
                entity=entity,
            )
            for entity in entities
        )
        self._slots: Dict[str, SelectionSlot] = {
            spec.name: SelectionSlot(spec) for spec in slots
        }
        self._compute = compute
        self._clock = clock
        self._tz = tz
        self._listener = listener

    # ------------------------------------------------------------------
    # Snapshot and filtering
    # ------------------------------------------------------------------

    @property
    def options(self) -> Tuple[SelectorOption, ...]:
        return self._options

    @property
    def slot_names(self) -> Tuple[str, ...]:
        return tuple(self._slots)

    def _slot(self, name: str) -> SelectionSlot:
        try:
            return self._slots[name]
        except KeyError:
            raise KeyError(
                f"Unknown selection slot '{name}'. "
                f"Available: {sorted(self._slots)}"
            ) from None

    def search(self, slot: str, query: str) -> List[SelectorOption]:
        """Set the slot's query and return the matching options."""
        self._slot(slot).query = query or ""
        return self.filtered(slot)

    def filtered(self, slot: str) -> List[SelectorOption]:
        needle = self._slot(slot).query.lower()
        return [opt for opt in self._options if needle in opt.label.lower()]

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def as_of_date(self, instant: datetime) -> date:
        return instant.astimezone(self._tz).date()

    def select(self, slot: str, entity: EntitySnapshot) -> DerivedFields:
        """
        Select ``entity`` in ``slot`` and compute its derived fields.

        The entity must belong to the snapshot this selector was built on.
        """
        state = self._slot(slot)
        if not any(opt.entity == entity for opt in self._options):
            raise ValueError(
                f"Entity '{entity.display_label}' is not in the directory snapshot"
            )

        now = self._clock()
        state.entity = entity
        state.derived = self._compute(entity, self.as_of_date(now))
        state.selected_at = now

        logger.debug("Slot '%s' selected '%s'", slot, entity.display_label)
        self._notify(slot, entity, state.derived, now)
        return state.derived

    def select_by_label(self, slot: str, label: str) -> DerivedFields:
        """Select the first entity whose label matches, ignoring case."""
        wanted = label.strip().lower()
        for opt in self._options:
            if opt.value == wanted:
                return self.select(slot, opt.entity)
        raise LookupError(f"No entity labelled '{label}' in the directory snapshot")

    def toggle(self, slot: str, value: str) -> DerivedFields:
        """
        Picker behaviour: choosing the already-selected option clears the slot.
        """
        state = self._slot(slot)
        if state.entity is not None and state.entity.display_label.lower() == value.lower():
            self.clear(slot)
            return state.derived
        return self.select_by_label(slot, value)

    def clear(self, slot: str) -> None:
        state = self._slot(slot)
        if state.entity is None:
            return
        state.reset()
        logger.debug("Slot '%s' cleared", slot)
        self._notify(slot, None, state.derived, self._clock())

    def _notify(
        self,
        slot: str,
        entity: Optional[EntitySnapshot],
        derived: DerivedFields,
        instant: datetime,
    ) -> None:
        if self._listener is not None:
            self._listener(slot, entity, derived, instant)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    def selected(self, slot: str) -> Optional[EntitySnapshot]:
        return self._slot(slot).entity

    def derived(self, slot: str) -> DerivedFields:
        return self._slot(slot).derived

    def selected_at(self, slot: str) -> Optional[datetime]:
        return self._slot(slot).selected_at

    def is_populated(self, slot: str) -> bool:
        return self._slot(slot).entity is not None

    @property
    def all_populated(self) -> bool:
        return all(state.entity is not None for state in self._slots.values())

    @property
    def any_populated(self) -> bool:
        return any(state.entity is not None for state in self._slots.values())

    def selections(self) -> Dict[str, EntitySnapshot]:
        return {
            name: state.entity
            for name, state in self._slots.items()
            if state.entity is not None
        }

    def derived_fields(self) -> Dict[str, DerivedFields]:
        return {name: state.derived for name, state in self._slots.items()}


@dataclass(frozen=True)
class CertificateFormBase:
    """
    Entity selection plus derived-field computation, shared by templates.

    Templates compose this instead of re-implementing their own picker
    and age arithmetic.
    """

    slots: Tuple[SlotSpec, ...] = (PRIMARY_SLOT,)
    compute: ComputeFn = field(default=compute_derived)

    @property
    def primary_slot(self) -> str:
        return self.slots[0].name

    @property
    def slot_names(self) -> Tuple[str, ...]:
        return tuple(spec.name for spec in self.slots)

    def compute_derived(
        self,
        selection: Mapping[str, Optional[EntitySnapshot]],
        as_of: date,
    ) -> Dict[str, DerivedFields]:
        return {
            spec.name: self.compute(selection.get(spec.name), as_of)
            for spec in self.slots
        }

    def open_selector(
        self,
        entities: Sequence[EntitySnapshot],
        *,
        clock: Clock = utc_now,
        tz: tzinfo = timezone.utc,
        listener: Optional[SelectionListener] = None,
    ) -> EntitySelector:
        return EntitySelector(
            entities,
            self.slots,
            compute=self.compute,
            clock=clock,
            tz=tz,
            listener=listener,
        )
