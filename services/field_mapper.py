"""
Field Mapper

Turns SAFE form values into the exact placeholder map the SAFE templates
expect. Every placeholder gets a string; absent optional values become "".
"""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, Union

from services.errors import ValidationError
from services.models import SafeFormValues

TEMPLATE_FIELDS = (
    'company_name',
    'investing_entity_name',
    'byline',
    'purchase_amount',
    'valuation_cap',
    'discount',
    'state_of_incorporation',
    'date',
    'investor_name',
    'investor_title',
    'investor_email',
    'investor_address_1',
    'investor_address_2',
    'founder_name',
    'founder_title',
    'founder_email',
    'company_address_1',
    'company_address_2',
)


# English month names, independent of the process locale
MONTH_NAMES = (
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December',
)

# Largest accepted power of ten in an amount (below a quadrillion)
MAX_AMOUNT_DIGITS = 14


def get_number_suffix(day: int) -> str:
    """English ordinal suffix for a day of the month."""
    if 11 <= day <= 13:
        return 'th'
    return {1: 'st', 2: 'nd', 3: 'rd'}.get(day % 10, 'th')


def parse_date(value: Union[date, datetime, str, None]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip().replace('Z', '+00:00')
        try:
            return datetime.fromisoformat(text).date()
        except ValueError:
            pass
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            pass
    raise ValidationError(f"Invalid date: {value!r}", field='date')


def format_submission_date(value) -> str:
    """Format a date as e.g. 'March 1st, 2024'."""
    parsed = parse_date(value)
    return f"{MONTH_NAMES[parsed.month - 1]} {parsed.day}{get_number_suffix(parsed.day)}, {parsed.year}"


def parse_number(value, field: str) -> Decimal:
    text = str(value).strip().replace('$', '').replace(',', '').replace(' ', '')
    try:
        number = Decimal(text)
    except InvalidOperation:
        raise ValidationError(f"'{value}' is not a number", field=field)
    if not number.is_finite():
        raise ValidationError(f"'{value}' is not a number", field=field)
    if number < 0:
        raise ValidationError(f"'{value}' must not be negative", field=field)
    if number.adjusted() > MAX_AMOUNT_DIGITS:
        raise ValidationError(f"'{value}' is too large", field=field)
    return number


def _plain(number: Decimal) -> str:
    if number == number.to_integral_value():
        return str(int(number))
    return format(number, 'f').rstrip('0').rstrip('.')


def format_amount(value, field: str) -> str:
    """Dollar amount with thousands separators; '' when no value was entered."""
    if value is None or str(value).strip() == '':
        return ''
    number = parse_number(value, field)
    if number == number.to_integral_value():
        return f"{int(number):,}"
    return f"{number:,.2f}"


def invert_discount(value) -> str:
    """
    The form collects the discount percentage, the template wants the
    percentage of the next-round price the investor pays: 100 - discount.
    """
    if value is None or str(value).strip() == '':
        return ''
    number = parse_number(value, 'discount')
    if number < 0 or number > 100:
        raise ValidationError("Discount must be between 0 and 100", field='discount')
    return _plain(Decimal(100) - number)


def map_to_template_fields(values: SafeFormValues) -> Dict[str, str]:
    """
    Build the complete placeholder map for a SAFE template.

    Only the term that belongs to the SAFE type is filled; a cap or discount
    left over from switching types renders as ''.
    """
    cap = values.valuation_cap if values.investment_type == 'valuation-cap' else ''
    discount = values.discount if values.investment_type == 'discount' else ''
    fields = {
        'company_name': values.company_name,
        'investing_entity_name': values.fund_name,
        'byline': values.fund_byline,
        'purchase_amount': format_amount(values.purchase_amount, 'purchase_amount'),
        'valuation_cap': format_amount(cap, 'valuation_cap'),
        'discount': invert_discount(discount),
        'state_of_incorporation': values.state_of_incorporation,
        'date': format_submission_date(values.date),
        'investor_name': values.investor_name,
        'investor_title': values.investor_title,
        'investor_email': values.investor_email,
        'investor_address_1': values.fund_street,
        'investor_address_2': values.fund_city_state_zip,
        'founder_name': values.founder_name,
        'founder_title': values.founder_title,
        'founder_email': values.founder_email,
        'company_address_1': values.company_street,
        'company_address_2': values.company_city_state_zip,
    }
    return {key: '' if fields.get(key) is None else str(fields[key]) for key in TEMPLATE_FIELDS}
