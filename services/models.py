"""
Typed records for the SAFE generator.

Supabase returns plain dicts; these dataclasses give each query result an
explicit shape, with optional joined relations as optional fields.
"""
from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from typing import Any, Dict, Optional, Union

from services.errors import ValidationError
from utils.validation import MAX_ID_LENGTH, sanitize_string, validate_boolean, validate_integer

INVESTMENT_TYPES = ('valuation-cap', 'discount', 'mfn')

ENTITY_KIND_FUND = 'fund'
ENTITY_KIND_COMPANY = 'company'

# Wizard steps; a shared link only ever shows the founder's section
FIRST_STEP = 1
SHARE_STEP = 2
LAST_STEP = 3


def _text(value) -> str:
    return '' if value is None else str(value)


@dataclass
class User:
    id: Optional[str] = None
    name: Optional[str] = None
    title: Optional[str] = None
    email: Optional[str] = None
    auth_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Optional[Dict[str, Any]]) -> Optional['User']:
        if not row:
            return None
        return cls(
            id=row.get('id'),
            name=row.get('name'),
            title=row.get('title'),
            email=row.get('email'),
            auth_id=row.get('auth_id'),
        )

    @property
    def first_name(self) -> str:
        return _text(self.name).split(' ')[0]


@dataclass
class Fund:
    id: Optional[str] = None
    name: Optional[str] = None
    byline: Optional[str] = None
    street: Optional[str] = None
    city_state_zip: Optional[str] = None
    investor_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Optional[Dict[str, Any]]) -> Optional['Fund']:
        if not row:
            return None
        return cls(
            id=row.get('id'),
            name=row.get('name'),
            byline=row.get('byline'),
            street=row.get('street'),
            city_state_zip=row.get('city_state_zip'),
            investor_id=row.get('investor_id'),
        )


@dataclass
class Company:
    id: Optional[str] = None
    name: Optional[str] = None
    street: Optional[str] = None
    city_state_zip: Optional[str] = None
    state_of_incorporation: Optional[str] = None
    founder_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Optional[Dict[str, Any]]) -> Optional['Company']:
        if not row:
            return None
        return cls(
            id=row.get('id'),
            name=row.get('name'),
            street=row.get('street'),
            city_state_zip=row.get('city_state_zip'),
            state_of_incorporation=row.get('state_of_incorporation'),
            founder_id=row.get('founder_id'),
        )


@dataclass
class Entity:
    """A reusable fund or company, tagged with its kind"""
    kind: str
    record: Union[Fund, Company]

    @property
    def id(self):
        return self.record.id

    @property
    def name(self):
        return self.record.name

    @property
    def owner_id(self):
        if self.kind == ENTITY_KIND_FUND:
            return self.record.investor_id
        return self.record.founder_id

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self.record)
        data['type'] = self.kind
        return data


@dataclass
class Investment:
    id: Optional[str] = None
    investor_id: Optional[str] = None
    fund_id: Optional[str] = None
    founder_id: Optional[str] = None
    company_id: Optional[str] = None
    purchase_amount: Optional[str] = None
    investment_type: Optional[str] = None
    valuation_cap: Optional[str] = None
    discount: Optional[str] = None
    date: Optional[str] = None
    created_by: Optional[str] = None

    @classmethod
    def from_row(cls, row: Optional[Dict[str, Any]]) -> Optional['Investment']:
        if not row:
            return None
        return cls(**{name: row.get(name) for name in cls.__dataclass_fields__})


@dataclass
class InvestmentWithRelations:
    investment: Investment
    founder: Optional[User] = None
    company: Optional[Company] = None
    investor: Optional[User] = None
    fund: Optional[Fund] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'InvestmentWithRelations':
        return cls(
            investment=Investment.from_row(row),
            founder=User.from_row(row.get('founder')),
            company=Company.from_row(row.get('company')),
            investor=User.from_row(row.get('investor')),
            fund=Fund.from_row(row.get('fund')),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self.investment)
        data['founder'] = asdict(self.founder) if self.founder else None
        data['company'] = asdict(self.company) if self.company else None
        data['investor'] = asdict(self.investor) if self.investor else None
        data['fund'] = asdict(self.fund) if self.fund else None
        return data


# camelCase keys used by the form front end -> SafeFormValues attributes
PAYLOAD_KEYS = {
    'fundName': 'fund_name',
    'fundByline': 'fund_byline',
    'fundStreet': 'fund_street',
    'fundCityStateZip': 'fund_city_state_zip',
    'investorName': 'investor_name',
    'investorTitle': 'investor_title',
    'investorEmail': 'investor_email',
    'companyName': 'company_name',
    'companyStreet': 'company_street',
    'companyCityStateZip': 'company_city_state_zip',
    'stateOfIncorporation': 'state_of_incorporation',
    'founderName': 'founder_name',
    'founderTitle': 'founder_title',
    'founderEmail': 'founder_email',
    'purchaseAmount': 'purchase_amount',
    'type': 'investment_type',
    'valuationCap': 'valuation_cap',
    'discount': 'discount',
    'date': 'date',
}


@dataclass
class SafeFormValues:
    """Full state of the three-step SAFE form"""
    fund_name: str = ''
    fund_byline: str = ''
    fund_street: str = ''
    fund_city_state_zip: str = ''
    investor_name: str = ''
    investor_title: str = ''
    investor_email: str = ''
    company_name: str = ''
    company_street: str = ''
    company_city_state_zip: str = ''
    state_of_incorporation: str = ''
    founder_name: str = ''
    founder_title: str = ''
    founder_email: str = ''
    purchase_amount: str = ''
    investment_type: str = ''
    valuation_cap: str = ''
    discount: str = ''
    date: Union[date, datetime, str, None] = None

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> 'SafeFormValues':
        values = cls()
        for key, attr in PAYLOAD_KEYS.items():
            value = (payload or {}).get(key)
            if value is None:
                continue
            if attr == 'date':
                values.date = value
            else:
                setattr(values, attr, _text(value).strip())
        return values

    @classmethod
    def from_investment(cls, details: InvestmentWithRelations) -> 'SafeFormValues':
        """Pre-populate the form from a stored investment"""
        inv = details.investment
        fund = details.fund or Fund()
        company = details.company or Company()
        investor = details.investor or User()
        founder = details.founder or User()
        return cls(
            fund_name=_text(fund.name),
            fund_byline=_text(fund.byline),
            fund_street=_text(fund.street),
            fund_city_state_zip=_text(fund.city_state_zip),
            investor_name=_text(investor.name),
            investor_title=_text(investor.title),
            investor_email=_text(investor.email),
            company_name=_text(company.name),
            company_street=_text(company.street),
            company_city_state_zip=_text(company.city_state_zip),
            state_of_incorporation=_text(company.state_of_incorporation),
            founder_name=_text(founder.name),
            founder_title=_text(founder.title),
            founder_email=_text(founder.email),
            purchase_amount=_text(inv.purchase_amount),
            investment_type=inv.investment_type or 'valuation-cap',
            valuation_cap=_text(inv.valuation_cap),
            discount=_text(inv.discount),
            date=inv.date or date.today(),
        )

    def get(self, key: str):
        """Look up a value by its camelCase form key"""
        return getattr(self, PAYLOAD_KEYS[key])

    def to_payload(self) -> Dict[str, Any]:
        payload = {}
        for key, attr in PAYLOAD_KEYS.items():
            value = getattr(self, attr)
            if attr == 'date' and isinstance(value, (date, datetime)):
                value = value.isoformat()
            payload[key] = value
        return payload


@dataclass
class FormSession:
    """Resumable wizard state carried in the URL (id, step, sharing)"""
    investment_id: Optional[str] = None
    step: int = 1
    locked: bool = False

    @classmethod
    def from_query(cls, params: Optional[Dict[str, Any]]) -> 'FormSession':
        """
        Parse id / step / sharing. A missing or unreadable step falls back to 1,
        out of range is clamped, and a shared link never goes past SHARE_STEP.
        """
        params = params or {}
        if not isinstance(params, dict):
            raise ValidationError("Session must be an object", field='session')
        locked = validate_boolean(params.get('sharing'))
        step = validate_integer(params.get('step'), min_value=FIRST_STEP, max_value=LAST_STEP) or FIRST_STEP
        if locked:
            step = min(step, SHARE_STEP)
        return cls(
            investment_id=sanitize_string(params.get('id'), max_length=MAX_ID_LENGTH) or None,
            step=step,
            locked=locked,
        )

    def to_query(self) -> Dict[str, str]:
        params = {'step': str(self.step)}
        if self.investment_id:
            params['id'] = str(self.investment_id)
        if self.locked:
            params['sharing'] = 'true'
        return params

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.investment_id, 'step': self.step, 'sharing': self.locked}


@dataclass
class RenderedDocument:
    """Rendered SAFE bytes plus the suggested download filename"""
    content: bytes
    filename: str
    template_name: str = ''
    fields: Dict[str, str] = field(default_factory=dict)

    MIMETYPE = 'application/vnd.openxmlformats-officedocument.wordprocessingml.document'
