# ruff: noqa: I001
"""CLI for the ``ledger_transfers`` package.

Exposes callable command handlers (``cmd_find_cc_payments``,
``cmd_list_accounts``) and a Typer-based console interface. Environment
variables (notably ``DATABASE_URL``) are loaded from a local ``.env`` using
``python-dotenv`` before delegating to command logic. Matching and linking
live in ``ledger_transfers.matching`` / ``ledger_transfers.linking``.
"""

from __future__ import annotations

import sys
from decimal import Decimal
from pathlib import Path

import typer
from dotenv import load_dotenv
from pydantic import ValidationError

from .logging_setup import configure_logging
from .models import DATE_PREFERENCES, Candidate, LinkOptions, MatcherOptions

DEFAULT_TAG = "#cc-payment-transfer"
DEFAULT_WINDOW_DAYS = 5
DEFAULT_MIN_SCORE = 0.95


# ---- Small module‑level helpers used by CLI commands -------------------------


def _err(msg: str) -> None:
    print(f"Error: {msg}", file=sys.stderr)


def _format_amount(minor_units: int) -> str:
    return f"{Decimal(minor_units).scaleb(-2):.2f}"


def _collect_cc_account_ids(cc_account: list[str] | None, cc_accounts: str | None) -> list[str]:
    ids = [s.strip() for s in (cc_account or []) if s and s.strip()]
    if cc_accounts:
        ids.extend(s.strip() for s in cc_accounts.split(",") if s.strip())
    return ids


def _print_candidate(pos: int, c: Candidate, account_names: dict[str, str]) -> None:
    print(f"\n#{pos} score={c.score:.2f} amount={_format_amount(c.amount)}")
    for label, tx in (("Outflow:", c.outflow), ("Inflow: ", c.inflow)):
        print(
            f"  {label} {tx.date} - {account_names.get(tx.account, tx.account)}"
            f" - {tx.imported_payee or 'No payee'} (id={tx.id})"
        )
    print(f"  Reasons: {', '.join(c.reasons)}")


def cmd_list_accounts(*, database_url: str | None = None) -> int:
    """Print every ledger account with its id and flags."""

    from ledger_db.client import session_scope
    from .persistence import SqlLedger

    try:
        with session_scope(database_url=database_url) as session:
            accounts = SqlLedger(session).load_accounts()
    except Exception as e:
        _err(f"failed to load accounts: {e}")
        return 1

    print("Accounts:")
    for a in accounts:
        flags = (" offbudget" if a.offbudget else "") + (" closed" if a.closed else "")
        print(f"- {a.name} (id={a.id}){flags}")
    return 0


def cmd_find_cc_payments(
    *,
    apply: bool = False,
    from_date: str | None = None,
    to_date: str | None = None,
    window_days: int = DEFAULT_WINDOW_DAYS,
    min_score: float = DEFAULT_MIN_SCORE,
    cc_account_ids: list[str] | None = None,
    cc_account_name_regex: str | None = None,
    tag: str = DEFAULT_TAG,
    date_preference: str = "outflow",
    pair: str | None = None,
    limit: int = 0,
    force: bool = False,
    stop_on_error: bool = True,
    database_url: str | None = None,
) -> int:
    """Find credit-card payment transfer pairs and optionally link them.

    Behavior
    --------
    - Loads accounts, payees and transactions from the ledger database.
    - With ``pair``: validates and links exactly that ``outflowId,inflowId``
      pair (looked up among all transactions, ignoring the date range).
    - Otherwise: scores candidates within ``from_date``/``to_date`` and prints
      them. Without ``apply`` nothing is written. With ``apply`` the first
      ``limit`` candidates are linked one at a time, in printed order.

    The ledger session runs in dry-run mode unless ``apply`` is set. Errors are
    written to stderr and the function returns ``1``; success returns ``0``.
    """

    from ledger_db.client import session_scope
    from .errors import LinkApplyError, MissingTransferPayeeError
    from .matching import find_transfer_candidates
    from .persistence import SqlLedger
    from .workflows.cc_payments import link_candidates, link_pair, parse_pair, select_pair

    window_days = max(1, window_days)
    min_score = max(0.0, min(1.0, min_score))
    if date_preference not in DATE_PREFERENCES:
        _err(f"--date must be one of {', '.join(DATE_PREFERENCES)} (got {date_preference!r})")
        return 1

    try:
        matcher_options = MatcherOptions(
            window_days=window_days,
            min_score=min_score,
            credit_card_account_ids=cc_account_ids or None,
            credit_card_account_name_regex=cc_account_name_regex or None,
        )
        link_options = LinkOptions(tag=tag, date_preference=date_preference)
    except ValidationError as e:
        _err(f"invalid options: {e}")
        return 1

    print("Credit Card Payment Transfer Finder")
    print("===================================")
    print("Mode: APPLY (will modify your ledger)" if apply else "Mode: DRY RUN (no changes)")
    print(f"Window: {window_days} day(s)")
    print(f"Min score: {min_score}")
    if from_date:
        print(f"From: {from_date}")
    if to_date:
        print(f"To: {to_date}")
    if pair:
        print(f"Pair: {pair}")
    if limit:
        print(f"Limit: {limit}")
    if force:
        print("Force: true")

    try:
        with session_scope(database_url=database_url) as session:
            ledger = SqlLedger(session, dry_run=not apply)
            accounts = ledger.load_accounts()
            payees = ledger.load_payees()
            account_names = {a.id: a.name for a in accounts}

            if pair:
                outflow_id, inflow_id = parse_pair(pair)
                # The requested pair is looked up outside any --from/--to range.
                outflow, inflow = select_pair(ledger.load_transactions(), outflow_id, inflow_id)
                print(f"\nLinking transfer pair: {outflow_id} -> {inflow_id}")
                plan = link_pair(
                    ledger,
                    outflow,
                    inflow,
                    payees,
                    accounts,
                    matcher_options=matcher_options,
                    link_options=link_options,
                    force=force,
                )
                print(f"  Date: {plan.chosen_date}")
                print(f"  Notes: {plan.merged_notes or ''}")
                if apply:
                    print("\nDone. Linked the requested pair as a transfer.")
                else:
                    print("\nDry run complete. Re-run with --apply to link this pair.")
                return 0

            transactions = ledger.load_transactions(from_date=from_date, to_date=to_date)
            candidates = find_transfer_candidates(transactions, accounts, matcher_options)
            print(
                f"Found {len(candidates)} high-confidence CC payment transfer candidate(s)."
            )
            for pos, c in enumerate(candidates, start=1):
                _print_candidate(pos, c, account_names)

            if not apply:
                print("\nDry run complete. Re-run with --apply to link these as transfers.")
                print(
                    'Tip: add --cc-account <accountId> or --cc-account-name-regex "<regex>" '
                    "to tighten matching."
                )
                if candidates:
                    first = candidates[0]
                    print("To apply exactly one pair, use:")
                    print(f"  find-cc-payments --apply --pair {first.outflow.id},{first.inflow.id}")
                return 0

            if limit <= 0:
                _err(
                    "Refusing to apply without an explicit selection. "
                    "Use --pair <outflowId>,<inflowId> or --limit N."
                )
                return 1

            outcomes = link_candidates(
                ledger,
                candidates[:limit],
                payees,
                accounts,
                matcher_options=matcher_options,
                link_options=link_options,
                force=force,
                stop_on_error=stop_on_error,
            )
    except (ValueError, MissingTransferPayeeError, LinkApplyError) as e:
        # PairValidationError and bad --from/--to dates are ValueErrors.
        _err(str(e))
        return 1
    except Exception as e:
        _err(f"unexpected failure: {e}")
        return 1

    failed = 0
    for o in outcomes:
        if o.status == "linked":
            print(f"Linked: {o.outflow_id} -> {o.inflow_id}")
        elif o.status == "skipped":
            print(f"Skipped: {o.outflow_id} -> {o.inflow_id}")
        else:
            failed += 1
            _err(f"failed to link {o.outflow_id} -> {o.inflow_id}: {o.error}")

    if failed:
        return 1
    print("\nDone. Linked candidates as transfers.")
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Find credit-card payment transfer pairs in a ledger and link them as "
        "transfers. Loads DATABASE_URL from a local .env before running."
    ),
)

DATABASE_URL_OPTION = typer.Option(None, help="Override DATABASE_URL (falls back to env var).")


@app.command("list-accounts")
def list_accounts_cmd(database_url: str | None = DATABASE_URL_OPTION) -> None:
    """List ledger accounts with their ids."""

    raise typer.Exit(cmd_list_accounts(database_url=database_url))


@app.command("find-cc-payments")
def find_cc_payments_cmd(
    *,
    apply: bool = typer.Option(False, "--apply", help="Write changes (default is a dry run)."),
    from_date: str | None = typer.Option(None, "--from", help="Earliest date (YYYY-MM-DD)."),
    to_date: str | None = typer.Option(None, "--to", help="Latest date (YYYY-MM-DD)."),
    window: int = typer.Option(DEFAULT_WINDOW_DAYS, "--window", help="Max day distance."),
    min_score: float = typer.Option(DEFAULT_MIN_SCORE, "--min-score", help="Score cutoff 0..1."),
    cc_account: list[str] | None = typer.Option(
        None, "--cc-account", help="Credit card account id (repeatable)."
    ),
    cc_accounts: str | None = typer.Option(
        None, "--cc-accounts", help="Comma-separated credit card account ids."
    ),
    cc_account_name_regex: str | None = typer.Option(
        None, "--cc-account-name-regex", help="Case-insensitive credit card account name regex."
    ),
    tag: str = typer.Option(DEFAULT_TAG, "--tag", help="Tag appended to merged notes."),
    date: str = typer.Option("outflow", "--date", help="Transfer date: outflow|inflow|min|max."),
    pair: str | None = typer.Option(None, "--pair", help="Link exactly <outflowId>,<inflowId>."),
    limit: int = typer.Option(0, "--limit", min=0, help="Apply the top N candidates."),
    force: bool = typer.Option(False, "--force", help="Skip the credit card account hint check."),
    stop_on_error: bool = typer.Option(
        True,
        "--stop-on-error/--keep-going",
        help="Stop at the first failed pair and leave the rest untouched.",
    ),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Find (and with --apply, link) credit card payment transfer pairs."""

    raise typer.Exit(
        cmd_find_cc_payments(
            apply=apply,
            from_date=from_date,
            to_date=to_date,
            window_days=window,
            min_score=min_score,
            cc_account_ids=_collect_cc_account_ids(cc_account, cc_accounts),
            cc_account_name_regex=cc_account_name_regex,
            tag=tag,
            date_preference=date,
            pair=pair,
            limit=limit,
            force=force,
            stop_on_error=stop_on_error,
            database_url=database_url,
        )
    )


@app.callback(invoke_without_command=True)
def _root(ctx: typer.Context) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding
    already-set environment variables) and configures package logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


def main() -> None:  # pragma: no cover - console script entry
    app()


if __name__ == "__main__":  # pragma: no cover
    app()
