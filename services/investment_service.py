"""
Investment record lifecycle.

An investment is persisted a piece at a time as the form advances: the
investor and fund on step 1, the founder and company on step 2, the deal
terms on submit. Parties are found by their natural key and updated, or
inserted when new, so a repeat investor or founder is never duplicated.

There is no transaction around the find-then-write in upsert_party; two
simultaneous first submissions for the same key can both insert.
"""
from typing import Any, Dict, List, Optional

from config.database import get_supabase
from services.errors import EntityNotFound, PersistenceError, ValidationError
from services.models import InvestmentWithRelations, SafeFormValues, User
from utils.logger import log_error, log_info

PARTY_KINDS = {
    # kind: (table, natural key columns)
    'investor-user': ('users', ('email',)),
    'founder-user': ('users', ('email',)),
    'fund': ('funds', ('name', 'investor_id')),
    'company': ('companies', ('name', 'founder_id')),
}

INVESTMENT_DETAILS_SELECT = """
    id,
    purchase_amount,
    investment_type,
    valuation_cap,
    discount,
    date,
    created_by,
    investor_id,
    fund_id,
    founder_id,
    company_id,
    founder:users!founder_id (id, name, title, email),
    company:companies (id, name, street, city_state_zip, state_of_incorporation, founder_id),
    investor:users!investor_id (id, name, title, email),
    fund:funds (id, name, byline, street, city_state_zip, investor_id)
"""

INVESTMENT_TYPE_LABELS = {
    'valuation-cap': 'Valuation Cap',
    'discount': 'Discount',
    'mfn': 'MFN',
}


def _fail(operation: str, kind: str, error: Exception):
    log_error(f"Error during {operation} of {kind}", error, component='investments')
    return PersistenceError(operation, kind, str(error))


def upsert_party(kind: str, match_key: Dict[str, Any], values: Dict[str, Any]):
    """
    Find a party by its natural key; update it if found, insert it otherwise.

    Args:
        kind: 'investor-user', 'founder-user', 'fund' or 'company'
        match_key: natural key, e.g. {'email': ...} or {'name': ..., 'investor_id': ...}
        values: row values to write; None and '' are skipped

    Returns:
        id of the existing or inserted row
    """
    if kind not in PARTY_KINDS:
        raise ValueError(f"Unknown party kind: {kind}")
    table, key_columns = PARTY_KINDS[kind]
    missing = [column for column in key_columns if not match_key.get(column)]
    if missing:
        raise ValidationError(f"{kind} requires {', '.join(missing)}", field=missing[0])

    supabase = get_supabase()
    # Blank inputs never overwrite what a returning party already has on file
    row = {key: value for key, value in values.items() if value not in (None, '')}
    row.update({column: match_key[column] for column in key_columns})

    try:
        query = supabase.table(table).select('id')
        for column in key_columns:
            query = query.eq(column, match_key[column])
        existing = query.execute()
    except Exception as e:
        raise _fail('select', kind, e)

    if existing.data:
        party_id = existing.data[0]['id']
        try:
            supabase.table(table).update(row).eq('id', party_id).execute()
        except Exception as e:
            raise _fail('update', kind, e)
        log_info(f"Reused existing {kind} {party_id}", component='investments')
        return party_id

    try:
        result = supabase.table(table).insert(row).execute()
    except Exception as e:
        raise _fail('insert', kind, e)
    if not result.data:
        raise PersistenceError('insert', kind, "no row returned")

    party_id = result.data[0]['id']
    log_info(f"Created {kind} {party_id}", component='investments')
    return party_id


def upsert_investment(investment_id: Optional[str], patch: Dict[str, Any]):
    """
    Insert a new investment or merge fields into an existing one.

    Keys whose value is None are dropped, so a later step never blanks out
    columns written by an earlier one.

    Returns:
        the investment id (new on insert, unchanged on update)
    """
    supabase = get_supabase()
    data = {key: value for key, value in patch.items() if value is not None}

    if not investment_id:
        try:
            result = supabase.table('investments').insert(data).execute()
        except Exception as e:
            raise _fail('insert', 'investment', e)
        if not result.data:
            raise PersistenceError('insert', 'investment', "no row returned")
        investment_id = result.data[0]['id']
        log_info(f"Created investment {investment_id}", component='investments')
        return investment_id

    try:
        result = supabase.table('investments').upsert({**data, 'id': investment_id}).execute()
    except Exception as e:
        raise _fail('upsert', 'investment', e)
    if not result.data:
        raise PersistenceError('upsert', 'investment', "no row returned")
    return result.data[0]['id']


def process_investor_details(values: SafeFormValues):
    """Find or create the investor user from step 1 values"""
    return upsert_party(
        'investor-user',
        {'email': values.investor_email},
        {'name': values.investor_name, 'title': values.investor_title},
    )


def process_fund_details(values: SafeFormValues, investor_id):
    """Find or create the investing entity owned by the investor"""
    return upsert_party(
        'fund',
        {'name': values.fund_name, 'investor_id': investor_id},
        {
            'byline': values.fund_byline,
            'street': values.fund_street,
            'city_state_zip': values.fund_city_state_zip,
        },
    )


def process_founder_details(values: SafeFormValues):
    """Find or create the founder user from step 2 values"""
    return upsert_party(
        'founder-user',
        {'email': values.founder_email},
        {'name': values.founder_name, 'title': values.founder_title},
    )


def process_company_details(values: SafeFormValues, founder_id):
    """Find or create the company owned by the founder"""
    return upsert_party(
        'company',
        {'name': values.company_name, 'founder_id': founder_id},
        {
            'street': values.company_street,
            'city_state_zip': values.company_city_state_zip,
            'state_of_incorporation': values.state_of_incorporation,
        },
    )


def deal_terms_patch(values: SafeFormValues) -> Dict[str, Any]:
    """Investment columns written on submit; only the term matching the type is kept"""
    date_value = values.date.isoformat() if hasattr(values.date, 'isoformat') else values.date
    return {
        'purchase_amount': values.purchase_amount or None,
        'investment_type': values.investment_type or None,
        'valuation_cap': (values.valuation_cap or None) if values.investment_type == 'valuation-cap' else None,
        'discount': (values.discount or None) if values.investment_type == 'discount' else None,
        'date': date_value or None,
    }


def fetch_investment_details(investment_id) -> InvestmentWithRelations:
    """Load an investment with its founder, company, investor and fund"""
    supabase = get_supabase()

    try:
        result = supabase.table('investments').select(INVESTMENT_DETAILS_SELECT).eq('id', investment_id).execute()
    except Exception as e:
        raise _fail('select', 'investment', e)

    if not result.data:
        raise EntityNotFound('Investment', investment_id)
    return InvestmentWithRelations.from_row(result.data[0])


def list_investments(user: User) -> List[InvestmentWithRelations]:
    """Investments created by the user, newest first"""
    supabase = get_supabase()

    try:
        result = supabase.table('investments').select(INVESTMENT_DETAILS_SELECT).eq(
            'created_by', user.auth_id
        ).order('date', desc=True).execute()
    except Exception as e:
        raise _fail('select', 'investments', e)

    return [InvestmentWithRelations.from_row(row) for row in (result.data or [])]


def format_investment_type(investment_type: str) -> str:
    return INVESTMENT_TYPE_LABELS.get(investment_type, investment_type)
