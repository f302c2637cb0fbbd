"""
Form step controller for the three-step SAFE wizard.

    Step 1  investor and investing entity (fund)
    Step 2  founder and company
    Step 3  deal terms, then submit to generate the SAFE

The wizard state (investment id, step, locked) travels in the URL as
id / step / sharing so a link resumes exactly where it was left. A locked
session is a shared link: the recipient saves their own section and never
moves on to the deal terms.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional
from urllib.parse import urlencode

from services import investment_service
from services.errors import ValidationError
from services.field_mapper import invert_discount, map_to_template_fields, parse_date, parse_number
from services.models import (
    FIRST_STEP,
    INVESTMENT_TYPES,
    LAST_STEP,
    SHARE_STEP,
    FormSession,
    RenderedDocument,
    SafeFormValues,
    User,
)
from services.notification_service import NotificationService
from services.template_service import render
from utils.logger import log_info, log_warning
from utils.validation import validate_email, validate_enum

STEP_FIELDS = {
    1: ['fundName', 'fundByline', 'fundStreet', 'fundCityStateZip',
        'investorName', 'investorTitle', 'investorEmail'],
    2: ['companyName', 'companyStreet', 'companyCityStateZip', 'stateOfIncorporation',
        'founderName', 'founderTitle', 'founderEmail'],
    3: ['purchaseAmount', 'type', 'valuationCap', 'discount', 'date'],
}

REQUIRED_FIELDS = {
    1: ['fundName', 'investorEmail'],
    2: ['companyName', 'stateOfIncorporation', 'founderEmail'],
    3: ['purchaseAmount', 'type', 'date', 'stateOfIncorporation'],
}


@dataclass
class StepResult:
    session: FormSession
    completed: bool = False


@dataclass
class SubmitResult:
    session: FormSession
    document: RenderedDocument


@dataclass
class ResumeState:
    session: FormSession
    values: Optional[SafeFormValues] = None


def parse_session(params: Optional[Dict]) -> FormSession:
    """Build a session from URL query params or the equivalent JSON object"""
    return FormSession.from_query(params)


def visible_fields(step: int, investment_type: str = '') -> List[str]:
    """Fields shown on a step; the cap and discount inputs depend on the SAFE type"""
    fields = list(STEP_FIELDS[step])
    if step == 3:
        if investment_type != 'valuation-cap':
            fields.remove('valuationCap')
        if investment_type != 'discount':
            fields.remove('discount')
    return fields


def required_fields(step: int, investment_type: str = '') -> List[str]:
    fields = list(REQUIRED_FIELDS[step])
    if step == 3:
        if investment_type == 'valuation-cap':
            fields.append('valuationCap')
        elif investment_type == 'discount':
            fields.append('discount')
    return fields


def validate_step(step: int, values: SafeFormValues) -> Dict[str, str]:
    """
    Check the fields of one step. Returns {field: message}; empty when valid.
    """
    errors = {}
    for key in required_fields(step, values.investment_type):
        value = values.get(key)
        if value is None or str(value).strip() == '':
            errors[key] = 'This field is required'

    for key in ('investorEmail', 'founderEmail'):
        if key in STEP_FIELDS[step] and key not in errors and values.get(key):
            if not validate_email(values.get(key)):
                errors[key] = 'Enter a valid email address'

    if step == 3:
        if values.investment_type and not validate_enum(values.investment_type, list(INVESTMENT_TYPES)):
            errors['type'] = f"Must be one of: {', '.join(INVESTMENT_TYPES)}"
        checks = [
            ('purchaseAmount', lambda v: parse_number(v, 'purchase_amount')),
            ('valuationCap', lambda v: parse_number(v, 'valuation_cap')),
            ('discount', invert_discount),
            ('date', parse_date),
        ]
        for key, check in checks:
            if key in errors or key not in visible_fields(3, values.investment_type):
                continue
            value = values.get(key)
            if value is None or str(value).strip() == '':
                continue
            try:
                check(value)
            except ValidationError as e:
                errors[key] = e.message
    return errors


def _raise_if_invalid(step: int, values: SafeFormValues):
    errors = validate_step(step, values)
    if errors:
        field = next(iter(errors))
        raise ValidationError(f"{field}: {errors[field]}", field=field, errors=errors)


def _with_creator(patch: Dict, session: FormSession, user: Optional[User]) -> Dict:
    if not session.investment_id and user is not None:
        patch['created_by'] = user.auth_id
    return patch


def advance(session: FormSession, values: SafeFormValues, user: Optional[User] = None) -> StepResult:
    """
    Save the current step ("Next", or "Save" on a shared link).

    Parties are saved first, then the investment row. Any failure raises and
    leaves the session where it was.
    """
    if session.step not in (1, 2):
        raise ValidationError("The deal terms step is completed with submit", field='step')
    _raise_if_invalid(session.step, values)

    if session.step == 1:
        investor_id = investment_service.process_investor_details(values)
        fund_id = investment_service.process_fund_details(values, investor_id)
        patch = {'investor_id': investor_id, 'fund_id': fund_id}
    else:
        founder_id = investment_service.process_founder_details(values)
        company_id = investment_service.process_company_details(values, founder_id)
        patch = {'founder_id': founder_id, 'company_id': company_id}

    investment_id = investment_service.upsert_investment(
        session.investment_id, _with_creator(patch, session, user)
    )

    if session.locked:
        log_info(f"Shared link saved step {session.step} of investment {investment_id}", component='form')
        return StepResult(FormSession(investment_id, session.step, True), completed=True)

    return StepResult(FormSession(investment_id, session.step + 1, False))


def back(session: FormSession) -> FormSession:
    """Go to the previous step; nothing is saved. Shared links stay on their section."""
    if session.locked:
        return session
    return FormSession(session.investment_id, max(FIRST_STEP, session.step - 1), session.locked)


def submit(session: FormSession, values: SafeFormValues, user: Optional[User] = None, store=None) -> SubmitResult:
    """
    Generate the SAFE from the deal terms step, then save the deal terms.

    Nothing is saved if validation or rendering fails.
    """
    if session.locked:
        raise ValidationError("Shared links cannot generate the SAFE", field='step')
    if session.step != LAST_STEP:
        raise ValidationError("The SAFE can only be generated from the deal terms step", field='step')
    _raise_if_invalid(LAST_STEP, values)

    fields = map_to_template_fields(values)
    document = render(values.investment_type, fields, store=store)

    investment_id = investment_service.upsert_investment(
        session.investment_id,
        _with_creator(investment_service.deal_terms_patch(values), session, user),
    )
    log_info(f"Generated {document.filename} for investment {investment_id}", component='form')
    return SubmitResult(FormSession(investment_id, LAST_STEP, False), document)


def resume(params: Optional[Dict]) -> ResumeState:
    """Restore a session from URL params, re-fetching the investment when an id is present"""
    session = parse_session(params)
    if not session.investment_id:
        return ResumeState(session)
    details = investment_service.fetch_investment_details(session.investment_id)
    return ResumeState(session, SafeFormValues.from_investment(details))


def build_share_url(base_url: str, session: FormSession) -> str:
    """Link that lets the founder fill in their section of the SAFE"""
    if not session.investment_id:
        raise ValidationError("Save the investment before sharing it", field='id')
    query = urlencode({'id': session.investment_id, 'step': SHARE_STEP, 'sharing': 'true'})
    return f"{base_url.rstrip('/')}/new?{query}"


def share(session: FormSession, to_email: str, base_url: str, notifier=None, store=None) -> Dict:
    """
    Build the share link and email it to the founder. The current SAFE is
    attached once the deal terms have been saved.
    """
    if not validate_email(to_email or ''):
        raise ValidationError("Enter a valid email address", field='email')
    url = build_share_url(base_url, session)
    details = investment_service.fetch_investment_details(session.investment_id)

    attachment = None
    if details.investment.investment_type in INVESTMENT_TYPES:
        values = SafeFormValues.from_investment(details)
        attachment = render(values.investment_type, map_to_template_fields(values), store=store)
    elif details.investment.investment_type:
        log_warning(
            f"Investment {session.investment_id} has unknown type '{details.investment.investment_type}'; sharing without attachment",
            component='form',
        )

    notifier = notifier or NotificationService()
    email_sent = notifier.send_share_email(details, to_email, attachment)
    return {'url': url, 'email_sent': email_sent, 'attached': attachment is not None}
