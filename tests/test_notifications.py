from rexeli.services.notifications import LowCreditNotice


def test_group_notice_keeps_group_name_casing():
    notice = LowCreditNotice(
        email="lead@example.com",
        name="Dana",
        balance_after=12,
        threshold=50,
        plan="professional_monthly",
        group_name="Acme Realty",
    )

    text = notice.text()

    assert notice.subject == "Low Credits Warning - RExeli"
    assert 'Your group "Acme Realty" has 12 credit(s) remaining' in text
    assert text.startswith("Hi Dana,")


def test_individual_notice_when_out_of_credits():
    notice = LowCreditNotice(
        email="solo@example.com", name=None, balance_after=0, threshold=5, plan="free",
    )

    assert notice.subject == "Out of Credits - Action Required - RExeli"
    assert "Your account has run out of credits." in notice.text()
