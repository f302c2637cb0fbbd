"""
Entity resolution: reusable funds and companies.

A user's own funds (as investor) and companies (as founder) can be picked
from a list to pre-fill the form. Selecting one fills the entity's fields
and then loads the owning user to fill the signatory fields.
"""
from typing import Dict, List

from config.database import get_supabase
from services.errors import EntityNotFound, PersistenceError
from services.models import ENTITY_KIND_COMPANY, ENTITY_KIND_FUND, Company, Entity, Fund
from services.profile_service import get_user
from utils.logger import log_error, log_info


def list_entities(user_id) -> List[Entity]:
    """Funds the user invests through followed by companies the user founded"""
    supabase = get_supabase()

    try:
        funds = supabase.table('funds').select('*').eq('investor_id', user_id).execute()
        companies = supabase.table('companies').select('*').eq('founder_id', user_id).execute()
    except Exception as e:
        log_error("Error fetching entities", e, component='entities')
        raise PersistenceError('select', 'entities', str(e))

    entities = [Entity(ENTITY_KIND_FUND, Fund.from_row(row)) for row in (funds.data or [])]
    entities += [Entity(ENTITY_KIND_COMPANY, Company.from_row(row)) for row in (companies.data or [])]
    return entities


def resolve_selection(entity_id, entities: List[Entity]) -> Dict[str, str]:
    """
    Form field patch for a selected entity.

    Args:
        entity_id: id of the chosen fund or company
        entities: the list previously returned by list_entities

    Returns:
        Dict keyed by form field name (fundName, investorEmail, ...)
    """
    selected = next((entity for entity in entities if str(entity.id) == str(entity_id)), None)
    if selected is None:
        raise EntityNotFound('Entity', entity_id)

    record = selected.record
    if selected.kind == ENTITY_KIND_FUND:
        patch = {
            'fundName': record.name or '',
            'fundByline': record.byline or '',
            'fundStreet': record.street or '',
            'fundCityStateZip': record.city_state_zip or '',
        }
        owner = get_user(record.investor_id)
        patch.update({
            'investorName': owner.name or '',
            'investorTitle': owner.title or '',
            'investorEmail': owner.email or '',
        })
    else:
        patch = {
            'companyName': record.name or '',
            'companyStreet': record.street or '',
            'companyCityStateZip': record.city_state_zip or '',
            'stateOfIncorporation': record.state_of_incorporation or '',
        }
        owner = get_user(record.founder_id)
        patch.update({
            'founderName': owner.name or '',
            'founderTitle': owner.title or '',
            'founderEmail': owner.email or '',
        })

    log_info(f"Resolved {selected.kind} {entity_id} for form pre-fill", component='entities')
    return patch
