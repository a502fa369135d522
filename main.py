import argparse
import datetime as dt
import getpass
import logging
import webbrowser
from dataclasses import dataclass

from soccerzone.admin_board import AdminSlotBoard
from soccerzone.api_client import SoccerZoneClient
from soccerzone.config import Settings, load_settings
from soccerzone.domain import AuthError, SoccerZoneError, ValidationError
from soccerzone.pending import PendingSelectionStore
from soccerzone.session import SessionGate
from soccerzone.slot_board import SlotBoard
from soccerzone.stats import (
    average_spending,
    filter_by_created,
    format_currency,
    monthly_spending,
    revenue_summary,
    search_users,
)
from soccerzone.storage import JsonFileStore
from soccerzone.tickets import render_ticket_pdf, verify_and_build_ticket

logger = logging.getLogger(__name__)

# An auth failure on these is about the credentials they carry, not the stored token.
_TOKENLESS_COMMANDS = {"login", "register", "reset-password"}


def _setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


@dataclass
class App:
    settings: Settings
    session: SessionGate
    pending: PendingSelectionStore
    client: SoccerZoneClient


def build_app(settings: Settings) -> App:
    store = JsonFileStore(settings.storage_file)
    session = SessionGate(store)
    return App(
        settings=settings,
        session=session,
        pending=PendingSelectionStore(store),
        client=SoccerZoneClient(settings, session),
    )


def _default_date(app: App) -> str:
    # Come back to the date of a parked selection, as after a login redirect.
    pending = app.pending.load()
    if pending is not None:
        return pending.date
    return dt.date.today().isoformat()


def _parse_date(raw: str) -> str:
    try:
        return dt.date.fromisoformat(raw).isoformat()
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date {raw!r}. Expected YYYY-MM-DD.") from None


def _print_slots(board) -> None:
    print(f"{board.date}: {board.available_count} of {board.total_count} slots available")
    for slot in board.slots:
        mark = "x" if slot.start_time in board.selected else " "
        print(f"  [{mark}] {slot.start_time}-{slot.end_time}  {format_currency(slot.amount, compact=False):>10}  {slot.status}")


def cmd_slots(app: App, args: argparse.Namespace) -> int:
    board = SlotBoard(app.client, app.session, app.pending, return_to=app.settings.return_to)
    board.load(args.date or _default_date(app))
    if board.error:
        print(board.error)
        return 1
    _print_slots(board)
    return 0


def cmd_book(app: App, args: argparse.Namespace) -> int:
    board = SlotBoard(app.client, app.session, app.pending, return_to=app.settings.return_to)

    board.load(args.date or _default_date(app))
    if board.error:
        print(board.error)
        return 1

    if args.start_times:
        board.selected = set()
        for start_time in args.start_times:
            if not board.toggle(start_time):
                print(f"Slot {start_time} is not available on {board.date}")

    payment_url = board.submit()

    if board.login_prompt:
        print("Please log in to complete your booking. Your selection has been saved.")
        print("Run `login` and then `book` again to continue.")
        return 1
    if not board.last_submit_ok:
        print(board.error)
        return 1

    print(f"Booked {board.date}. Complete payment at: {payment_url}")
    if payment_url and not args.no_browser:
        webbrowser.open(payment_url)
    return 0


def cmd_login(app: App, args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("Password: ")
    app.client.login(args.identifier, password)
    print(f"Login successful. Home: {app.session.home_path()}")

    pending = app.pending.load()
    if pending is not None:
        print(f"You have a saved selection for {pending.date}: {', '.join(pending.start_times)}")
        print("Run `book` to complete it.")
    return 0


def cmd_logout(app: App, args: argparse.Namespace) -> int:
    app.session.clear()
    print("Logged out.")
    return 0


def cmd_whoami(app: App, args: argparse.Namespace) -> int:
    print(f"{app.session.role().value} ({app.session.home_path()})")
    return 0


def cmd_register(app: App, args: argparse.Namespace) -> int:
    if "@" not in args.email:
        raise ValidationError("Invalid email format")
    password = args.password or getpass.getpass("Password: ")
    app.client.register(name=args.name, email=args.email, phone=args.phone, password=password)
    print("Registration successful! You can now log in.")
    return 0


def cmd_reset_password(app: App, args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("New password: ")
    confirm = args.confirm if args.confirm is not None else getpass.getpass("Confirm password: ")
    if password != confirm:
        raise ValidationError("Passwords do not match.")
    app.client.reset_password(args.token, password)
    print("Password reset successful! You can now log in.")
    return 0


def cmd_verify_payment(app: App, args: argparse.Namespace) -> int:
    result = verify_and_build_ticket(app.client, args.reference)
    print(result.message or ("Payment verified" if result.success else "Payment not confirmed"))
    if not result.success:
        return 1

    for slot in result.slots:
        print(f"  {slot.date} {slot.start_time}-{slot.end_time}")
    if args.pdf:
        print(f"Ticket saved to {render_ticket_pdf(result, app.settings.ticket_dir)}")
    return 0


def cmd_admin_book(app: App, args: argparse.Namespace) -> int:
    board = AdminSlotBoard(app.client)
    board.load(args.date)
    if board.error:
        print(board.error)
        return 1

    for start_time in args.start_times:
        board.toggle(start_time)
    board.submit(user_email=args.email, team_name=args.team)
    print(f"Cash booking recorded for {args.date}.")
    _print_slots(board)
    return 0


def cmd_admin_stats(app: App, args: argparse.Namespace) -> int:
    bookings = filter_by_created(app.client.list_bookings(), args.start, args.end)
    users = filter_by_created(app.client.list_users(), args.start, args.end)
    stats = revenue_summary(bookings, users)

    print(f"Total bookings:    {stats.total_bookings}")
    print(f"Total revenue:     {format_currency(stats.total_revenue)}")
    print(f"Confirmed revenue: {format_currency(stats.confirmed_revenue)}")
    print(f"Pending revenue:   {format_currency(stats.pending_revenue)}")
    print(f"Users:             {stats.total_users}")
    return 0


def cmd_users(app: App, args: argparse.Namespace) -> int:
    for user in search_users(app.client.list_users(), args.search or ""):
        print(f"{user.id}  {user.name:<24} {user.email:<32} {user.role}")
    return 0


def cmd_add_user(app: App, args: argparse.Namespace) -> int:
    if "@" not in args.email:
        raise ValidationError("Invalid email format")
    if not app.session.is_authenticated:
        print("You must be logged in as an admin to perform this action.")
        return 1
    password = args.password or getpass.getpass("Password: ")
    app.client.create_user(name=args.name, email=args.email, phone=args.phone, password=password, role=args.role)
    print("User added successfully!")
    return 0


def cmd_edit_user(app: App, args: argparse.Namespace) -> int:
    fields = {k: v for k, v in (("name", args.name), ("email", args.email), ("phone", args.phone)) if v}
    if not fields:
        raise ValidationError("Nothing to update")
    if "email" in fields and "@" not in fields["email"]:
        raise ValidationError("Invalid email format")
    app.client.update_profile(args.user_id, fields)
    print("Profile updated.")
    return 0


def _print_spending(bookings, summary: dict) -> None:
    total = float(summary.get("totalAmount") or sum(b.total_amount for b in bookings))
    print(f"Bookings: {len(bookings)}  Total spent: {format_currency(total, compact=False)}")
    print(f"Average per booking: {format_currency(average_spending(bookings, total), compact=False)}")
    for label, amount in monthly_spending(bookings):
        print(f"  {label}: {format_currency(amount, compact=False)}")


def cmd_user(app: App, args: argparse.Namespace) -> int:
    data = app.client.get_user(args.user_id)
    user = data["user"]
    print(f"{user.name} <{user.email}> ({user.role})")
    _print_spending(data["bookings"], data["summary"])
    return 0


def cmd_dashboard(app: App, args: argparse.Namespace) -> int:
    if not app.session.is_authenticated:
        print("Please log in to access your dashboard")
        return 1
    data = app.client.get_profile()
    print(f"Welcome, {data['user'].name}")
    _print_spending(data["bookings"], data["summary"])
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="SoccerZone: book pitch time slots")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress to stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("slots", help="List time slots for a date")
    p.add_argument("--date", type=_parse_date)
    p.set_defaults(func=cmd_slots)

    p = sub.add_parser("book", help="Book slots (without start times: resume a saved selection)")
    p.add_argument("--date", type=_parse_date)
    p.add_argument("start_times", nargs="*", metavar="HH:MM")
    p.add_argument("--no-browser", action="store_true", help="Print the payment link instead of opening it")
    p.set_defaults(func=cmd_book)

    p = sub.add_parser("login", help="Log in and store the session token")
    p.add_argument("identifier", help="Email or phone")
    p.add_argument("--password")
    p.set_defaults(func=cmd_login)

    p = sub.add_parser("logout", help="Forget the stored session token")
    p.set_defaults(func=cmd_logout)

    p = sub.add_parser("whoami", help="Show the role stored in the session token")
    p.set_defaults(func=cmd_whoami)

    p = sub.add_parser("register", help="Create an account")
    p.add_argument("--name", required=True)
    p.add_argument("--email", required=True)
    p.add_argument("--phone", required=True)
    p.add_argument("--password")
    p.set_defaults(func=cmd_register)

    p = sub.add_parser("reset-password", help="Set a new password with a reset token")
    p.add_argument("--token", required=True)
    p.add_argument("--password")
    p.add_argument("--confirm")
    p.set_defaults(func=cmd_reset_password)

    p = sub.add_parser("verify-payment", help="Confirm a payment after the gateway redirect")
    p.add_argument("reference")
    p.add_argument("--pdf", action="store_true", help="Save the ticket as PDF")
    p.set_defaults(func=cmd_verify_payment)

    p = sub.add_parser("dashboard", help="Your bookings and monthly spending")
    p.set_defaults(func=cmd_dashboard)

    p = sub.add_parser("admin-book", help="Record a cash booking")
    p.add_argument("--date", type=_parse_date, required=True)
    p.add_argument("start_times", nargs="+", metavar="HH:MM")
    p.add_argument("--email")
    p.add_argument("--team")
    p.set_defaults(func=cmd_admin_book)

    p = sub.add_parser("admin-stats", help="Bookings and revenue totals")
    p.add_argument("--from", dest="start", type=dt.date.fromisoformat)
    p.add_argument("--to", dest="end", type=dt.date.fromisoformat)
    p.set_defaults(func=cmd_admin_stats)

    p = sub.add_parser("users", help="List users")
    p.add_argument("--search")
    p.set_defaults(func=cmd_users)

    p = sub.add_parser("add-user", help="Create a user account (admin)")
    p.add_argument("--name", required=True)
    p.add_argument("--email", required=True)
    p.add_argument("--phone", required=True)
    p.add_argument("--password")
    p.add_argument("--role", choices=("user", "admin"), default="user")
    p.set_defaults(func=cmd_add_user)

    p = sub.add_parser("edit-user", help="Update a user profile")
    p.add_argument("user_id")
    p.add_argument("--name")
    p.add_argument("--email")
    p.add_argument("--phone")
    p.set_defaults(func=cmd_edit_user)

    p = sub.add_parser("user", help="Show one user with their spending")
    p.add_argument("user_id")
    p.set_defaults(func=cmd_user)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    _setup_logging(args.verbose)
    settings = load_settings()
    app = build_app(settings)

    try:
        return args.func(app, args)

    except AuthError as e:
        if args.command in _TOKENLESS_COMMANDS:
            print(str(e))
            return 1
        app.session.clear()
        print(f"{e}. Please log in again.")
        return 1

    except SoccerZoneError as e:
        # Failures stay scoped to the command; the user retries by running it again.
        logger.info("Command %s failed (%s: %s)", args.command, type(e).__name__, e)
        print(str(e) or type(e).__name__)
        return 1

    finally:
        app.client.close()


if __name__ == "__main__":
    raise SystemExit(main())
