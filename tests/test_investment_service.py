"""Tests for party and investment persistence."""

import pytest

from services import investment_service
from services.errors import EntityNotFound, PersistenceError, ValidationError
from services.investment_service import (
    deal_terms_patch,
    fetch_investment_details,
    format_investment_type,
    list_investments,
    upsert_investment,
    upsert_party,
)
from services.models import SafeFormValues, User


class TestUpsertParty:

    def test_insert_then_reuse(self, fake_db):
        first = upsert_party('investor-user', {'email': 'alana@example.com'}, {'name': 'Alana', 'title': 'GP'})
        second = upsert_party('investor-user', {'email': 'alana@example.com'}, {'name': 'Alana', 'title': 'GP'})

        assert first == second
        assert len(fake_db.tables['users']) == 1

    def test_existing_party_updated_in_place(self, fake_db):
        party_id = upsert_party('founder-user', {'email': 'wile@acme.com'}, {'name': 'Wile', 'title': 'CEO'})
        upsert_party('founder-user', {'email': 'wile@acme.com'}, {'name': 'Wile E. Coyote', 'title': 'CEO'})

        row = fake_db.tables['users'][0]
        assert row['id'] == party_id
        assert row['name'] == 'Wile E. Coyote'

    def test_blank_values_keep_stored_ones(self, fake_db):
        party_id = upsert_party('investor-user', {'email': 'alana@example.com'},
                                {'name': 'Alana Goyal', 'title': 'Managing Partner'})
        again = upsert_party('investor-user', {'email': 'alana@example.com'}, {'name': '', 'title': None})

        assert again == party_id
        row = fake_db.tables['users'][0]
        assert (row['name'], row['title']) == ('Alana Goyal', 'Managing Partner')

    def test_blank_values_not_inserted(self, fake_db):
        upsert_party('fund', {'name': 'Fund I', 'investor_id': 'u1'}, {'byline': '', 'street': '1 Market St'})
        assert 'byline' not in fake_db.tables['funds'][0]

    def test_fund_matched_by_name_and_owner(self, fake_db):
        a = upsert_party('fund', {'name': 'Fund I', 'investor_id': 'u1'}, {'street': '1 Market St'})
        b = upsert_party('fund', {'name': 'Fund I', 'investor_id': 'u2'}, {'street': '9 Elm St'})
        c = upsert_party('fund', {'name': 'Fund I', 'investor_id': 'u1'}, {'street': '3 Pine St'})

        assert a != b
        assert a == c
        assert len(fake_db.tables['funds']) == 2
        assert next(r for r in fake_db.tables['funds'] if r['id'] == a)['street'] == '3 Pine St'

    def test_company_matched_by_name_and_owner(self, fake_db):
        a = upsert_party('company', {'name': 'Acme', 'founder_id': 'f1'}, {'state_of_incorporation': 'DE'})
        b = upsert_party('company', {'name': 'Acme', 'founder_id': 'f1'}, {'state_of_incorporation': 'CA'})
        assert a == b
        assert fake_db.tables['companies'][0]['state_of_incorporation'] == 'CA'

    def test_missing_match_key(self, fake_db):
        with pytest.raises(ValidationError) as exc:
            upsert_party('investor-user', {'email': ''}, {'name': 'Nobody'})
        assert exc.value.field == 'email'

    def test_unknown_kind(self, fake_db):
        with pytest.raises(ValueError):
            upsert_party('lawyer', {'email': 'x@example.com'}, {})

    @pytest.mark.parametrize('operation', ['select', 'insert'])
    def test_store_failure(self, fake_db, operation):
        fake_db.fail_on.add(('users', operation))
        with pytest.raises(PersistenceError) as exc:
            upsert_party('investor-user', {'email': 'alana@example.com'}, {'name': 'Alana'})
        assert exc.value.operation == operation
        assert exc.value.kind == 'investor-user'

    def test_update_failure(self, fake_db):
        fake_db.add('companies', name='Acme', founder_id='f1')
        fake_db.fail_on.add(('companies', 'update'))
        with pytest.raises(PersistenceError) as exc:
            upsert_party('company', {'name': 'Acme', 'founder_id': 'f1'}, {'street': '2 Main St'})
        assert exc.value.operation == 'update'


class TestUpsertInvestment:

    def test_insert_returns_new_id(self, fake_db):
        investment_id = upsert_investment(None, {'investor_id': 'u1', 'fund_id': 'f1', 'created_by': 'auth-1'})
        assert investment_id
        assert fake_db.tables['investments'][0]['fund_id'] == 'f1'

    def test_fields_merge_across_calls(self, fake_db):
        investment_id = upsert_investment(None, {'purchase_amount': '100000'})
        same_id = upsert_investment(investment_id, {'investment_type': 'mfn', 'discount': None})

        assert same_id == investment_id
        row = fake_db.tables['investments'][0]
        assert row['purchase_amount'] == '100000'
        assert row['investment_type'] == 'mfn'
        assert 'discount' not in row

    def test_later_steps_keep_earlier_parties(self, fake_db):
        investment_id = upsert_investment(None, {'investor_id': 'u1', 'fund_id': 'f1'})
        upsert_investment(investment_id, {'founder_id': 'u2', 'company_id': 'c1'})

        assert len(fake_db.tables['investments']) == 1
        row = fake_db.tables['investments'][0]
        assert (row['investor_id'], row['fund_id'], row['founder_id'], row['company_id']) == ('u1', 'f1', 'u2', 'c1')

    def test_failure(self, fake_db):
        fake_db.fail_on.add(('investments', 'insert'))
        with pytest.raises(PersistenceError) as exc:
            upsert_investment(None, {'investor_id': 'u1'})
        assert exc.value.kind == 'investment'


class TestDealTerms:

    def test_only_the_matching_term_is_kept(self):
        values = SafeFormValues(
            purchase_amount='100000', investment_type='discount',
            valuation_cap='5000000', discount='20', date='2024-03-01',
        )
        patch = deal_terms_patch(values)
        assert patch['discount'] == '20'
        assert patch['valuation_cap'] is None
        assert patch['date'] == '2024-03-01'

    def test_mfn_has_neither(self):
        from datetime import date
        patch = deal_terms_patch(SafeFormValues(purchase_amount='1', investment_type='mfn',
                                                valuation_cap='5', discount='5', date=date(2024, 1, 1)))
        assert patch['valuation_cap'] is None
        assert patch['discount'] is None
        assert patch['date'] == '2024-01-01'


class TestInvestmentDetails:

    def test_fetch_with_relations(self, fake_db):
        investor = fake_db.add('users', name='Alana Goyal', email='alana@example.com')
        fund = fake_db.add('funds', name='Basecase Capital I, LP', investor_id=investor['id'])
        investment = fake_db.add('investments', investor_id=investor['id'], fund_id=fund['id'],
                                 investment_type='valuation-cap', purchase_amount='500000')

        details = fetch_investment_details(investment['id'])

        assert details.investment.purchase_amount == '500000'
        assert details.investor.email == 'alana@example.com'
        assert details.fund.name == 'Basecase Capital I, LP'
        assert details.founder is None
        assert details.company is None

    def test_not_found(self, fake_db):
        with pytest.raises(EntityNotFound):
            fetch_investment_details('missing')

    def test_list_for_creator(self, fake_db):
        fake_db.add('investments', created_by='auth-1', date='2024-01-01')
        fake_db.add('investments', created_by='auth-1', date='2024-06-01')
        fake_db.add('investments', created_by='auth-2', date='2024-03-01')

        investments = list_investments(User(id='u1', auth_id='auth-1'))
        assert [i.investment.date for i in investments] == ['2024-06-01', '2024-01-01']

    def test_type_labels(self):
        assert format_investment_type('valuation-cap') == 'Valuation Cap'
        assert format_investment_type('discount') == 'Discount'
        assert format_investment_type('mfn') == 'MFN'
        assert format_investment_type('other') == 'other'


class TestProcessDetails:

    def test_step_one_parties(self, fake_db):
        values = SafeFormValues(fund_name='Fund I', investor_email='alana@example.com', investor_name='Alana')
        investor_id = investment_service.process_investor_details(values)
        fund_id = investment_service.process_fund_details(values, investor_id)

        assert fake_db.tables['funds'][0]['investor_id'] == investor_id
        assert fake_db.tables['funds'][0]['id'] == fund_id

    def test_step_two_parties(self, fake_db):
        values = SafeFormValues(company_name='Acme', founder_email='wile@acme.com', state_of_incorporation='DE')
        founder_id = investment_service.process_founder_details(values)
        company_id = investment_service.process_company_details(values, founder_id)

        company = fake_db.tables['companies'][0]
        assert (company['id'], company['founder_id'], company['state_of_incorporation']) == (company_id, founder_id, 'DE')
