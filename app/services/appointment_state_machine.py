"""Appointment lifecycle rules."""

from app.core.exceptions import ForbiddenException, InvalidTransitionException
from app.schemas.appointments import AppointmentStatus, TransitionActor

S = AppointmentStatus
A = TransitionActor

# (from, to) -> actors allowed to drive it. Anything absent is illegal.
TRANSITIONS: dict[tuple[AppointmentStatus, AppointmentStatus], frozenset[TransitionActor]] = {
    (S.SCHEDULED, S.AWAITING_PAYMENT): frozenset({A.DOCTOR}),
    (S.AWAITING_PAYMENT, S.CONFIRMED): frozenset({A.PAYMENT_SERVICE}),
    (S.SCHEDULED, S.CANCELLED): frozenset({A.PATIENT, A.DOCTOR}),
    (S.AWAITING_PAYMENT, S.CANCELLED): frozenset({A.PATIENT, A.DOCTOR}),
    (S.CONFIRMED, S.CANCELLED): frozenset({A.PATIENT, A.DOCTOR}),
    (S.SCHEDULED, S.COMPLETED): frozenset({A.DOCTOR}),
    (S.CONFIRMED, S.COMPLETED): frozenset({A.DOCTOR}),
    (S.SCHEDULED, S.NO_SHOW): frozenset({A.DOCTOR}),
    (S.CONFIRMED, S.NO_SHOW): frozenset({A.DOCTOR}),
}


def check_transition(
    current: AppointmentStatus,
    target: AppointmentStatus,
    actor: TransitionActor,
) -> None:
    """
    Validate a requested transition.

    Raises:
        InvalidTransitionException: The pair is not in the table
        ForbiddenException: The pair exists but not for this actor
    """
    allowed_actors = TRANSITIONS.get((current, target))
    if allowed_actors is None:
        raise InvalidTransitionException(current.value, target.value)
    if actor not in allowed_actors:
        raise ForbiddenException(
            f"A {actor.value} cannot move an appointment from '{current.value}' "
            f"to '{target.value}'"
        )
