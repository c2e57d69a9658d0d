from enrollment.services.entities import Entrant, EntityKind, SINGLES, DOUBLES
from enrollment.services.capacity_service import (
    lock_tournament, count_registered, check_capacity,
    get_next_waitlist_candidate, waitlist_position,
)
from enrollment.services.eligibility_service import calculate_age, check_eligibility
from enrollment.services.category_service import (
    ensure_membership, require_membership, should_unregister_from_category,
    register_for_category, withdraw_category_registration,
    reactivate_category_registration, get_category_registrations,
)
from enrollment.services.admission_service import admit, register_player, register_pair
from enrollment.services.withdrawal_service import (
    withdraw, unregister,
    unregister_player, withdraw_player_by_registration_id,
    unregister_pair, withdraw_pair_registration,
)
from enrollment.services.tournament_service import (
    create_category, create_player, create_pair,
    create_tournament, get_tournament, list_tournaments, set_tournament_status,
    get_registration, list_tournament_registrations, get_entrant_registrations,
)

__all__ = [
    # entity kinds
    "Entrant", "EntityKind", "SINGLES", "DOUBLES",
    # capacity oracle / waitlist selector
    "lock_tournament", "count_registered", "check_capacity",
    "get_next_waitlist_candidate", "waitlist_position",
    # eligibility gate
    "calculate_age", "check_eligibility",
    # category membership
    "ensure_membership", "require_membership", "should_unregister_from_category",
    "register_for_category", "withdraw_category_registration",
    "reactivate_category_registration", "get_category_registrations",
    # admission
    "admit", "register_player", "register_pair",
    # withdrawal / promotion
    "withdraw", "unregister",
    "unregister_player", "withdraw_player_by_registration_id",
    "unregister_pair", "withdraw_pair_registration",
    # directory
    "create_category", "create_player", "create_pair",
    "create_tournament", "get_tournament", "list_tournaments", "set_tournament_status",
    "get_registration", "list_tournament_registrations", "get_entrant_registrations",
]
