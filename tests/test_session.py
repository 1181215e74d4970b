from swapper.domain.models import SwapPreview
from swapper.domain.tokens import same_address
from swapper.services.pool_resolver import NOTE_SWITCHED
from swapper.services.session import SwapSession, compute_preview, owned_pools

from conftest import A, ACCOUNT, CONTRACT, G, W, X, units


def test_preview_for_routable_source_token(session, aliases):
    session.add_pool(W, G, units(100), units(200))
    session.set_balance(W, units(20))

    preview = compute_preview(session, aliases, ACCOUNT, A, G, "10")

    assert preview.resolution.exists
    assert preview.resolution.note == NOTE_SWITCHED
    assert preview.estimated_output is not None
    assert preview.exchange_rate == preview.estimated_output / 10
    assert preview.prices.price_in == 2.0
    assert preview.token_in_name == "APLO" and preview.token_out_name == "GAPLO"
    assert preview.can_swap
    assert session.writes == []


def test_preview_degrades_instead_of_raising(session, aliases):
    # incomplete input
    preview = compute_preview(session, aliases, ACCOUNT, A, None, "")
    assert preview.resolution is None and not preview.can_swap

    # failing probes look like a missing pool
    session.fail_pair(W, G)
    session.fail_pair(A, G)
    preview = compute_preview(session, aliases, ACCOUNT, A, G, "1")
    assert not preview.resolution.exists
    assert preview.estimated_output is None

    # estimate failure only clears the estimate
    session.add_pool(G, X, units(10), units(10))
    session.set_balance(X, units(5))
    session.swap_amount_fails = True
    preview = compute_preview(session, aliases, ACCOUNT, X, G, "1")
    assert preview.resolution.exists
    assert preview.estimated_output is None and preview.exchange_rate is None
    assert not preview.can_swap


def test_unnamed_token_shows_short_address(session, aliases):
    preview = compute_preview(session, aliases, ACCOUNT, X, G, None)
    assert preview.token_in_name == "0x0000...00b2"


def test_update_tracks_latest_inputs(session, aliases):
    session.add_pool(W, G, units(100), units(100))
    session.set_balance(A, units(50))
    swap_session = SwapSession(session, aliases)

    first = swap_session.update(token_in=A, token_out=G)
    assert first.estimated_output is None
    second = swap_session.update(amount="1")
    assert second.generation == 2
    assert second.estimated_output is not None
    assert swap_session.preview is second

    cleared = swap_session.clear()
    assert cleared.resolution is None and cleared.balance.primary_balance is None


def test_stale_preview_is_dropped(session, aliases):
    swap_session = SwapSession(session, aliases)
    current = swap_session.update(token_in=A)
    swap_session.update(token_in=W)

    published = swap_session._publish(SwapPreview(generation=current.generation))

    assert published.generation == 2
    assert swap_session.preview.generation == 2


def test_owned_pools_rows(session):
    session.add_pool(W, G, units(1), units(1), owner=True)
    session.add_pool(G, X, units(1), units(1))
    session.owned.append("0x" + "00" * 32)   # id without a pool

    rows = owned_pools(session, ACCOUNT)

    assert len(rows) == 1
    assert same_address(rows[0].token_in, W)
    assert rows[0].token_out_name == "GAPLO"
    assert rows[0].contract_address.lower() == CONTRACT.lower()
    assert owned_pools(session, None) == []
