"""
Main CLI application using Typer.
"""

from pathlib import Path
from typing import Dict, List, NoReturn, Optional, Annotated, Tuple

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..adapters.yaml_store import YamlFileStore
from ..config import AppConfig, configure_logging
from ..domain.exceptions import RepairConnectError
from ..domain.models import Appointment, Slot, Vehicle
from ..domain.quotation import Quotation
from ..domain.settings import AppointmentSettings, DayHours
from ..services.bidding import BiddingService
from ..services.scheduling import SchedulingService

DEFAULT_DATA_FILE = Path("repairconnect-data.yaml")

app = typer.Typer(
    name="repairconnect",
    help="Workshop appointment availability and repair-quote bidding",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
DataOption = Annotated[Optional[Path], typer.Option("--data", "-D", help="Path to the YAML data file")]


def _open_store(config_file: Optional[Path], data_file: Optional[Path]) -> Tuple[AppConfig, YamlFileStore]:
    """Load the configuration, set up logging and open the data file."""
    config = AppConfig.load_or_default(config_file)
    configure_logging(config.log_level)
    path = data_file or config.store.data_file or DEFAULT_DATA_FILE
    return config, YamlFileStore(path, timeout_seconds=config.store.timeout_seconds)


def _fail(error: Exception) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(1)


def _slot_table(title: str, slots: List[Slot], show_reason: bool = False) -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Date", style="bold yellow")
    table.add_column("Start")
    table.add_column("End")
    if show_reason:
        table.add_column("Status")
    for slot in slots:
        row = [slot.date.isoformat(), slot.start_time, slot.end_time]
        if show_reason:
            row.append("[green]available[/green]" if slot.available else f"[dim]{slot.reason}[/dim]")
        table.add_row(*row)
    return table


def _quotation_panel(quotation: Quotation) -> Panel:
    lines = [
        f"[bold]Vehicle:[/bold] {quotation.vehicle.title}",
        f"[bold]Status:[/bold] {quotation.status.value}",
        f"[bold]Quotes:[/bold] {len(quotation.quotes)}",
    ]
    for quote in quotation.quotes:
        marker = "[green]✓[/green]" if quote.id == quotation.accepted_quote_id else " "
        lines.append(
            f" {marker} {quote.id}  {quote.workshop_name or quote.workshop_id}  "
            f"{quote.currency} {quote.total_amount}  ({quote.status.value})"
        )
    return Panel.fit("\n".join(lines), title=f"Quotation {quotation.id}")


def _parse_hours(values: List[str]) -> Dict[str, DayHours]:
    """Parse ``day=HH:MM-HH:MM`` entries into weekly operating hours."""
    hours = {}
    for value in values:
        day, _, window = value.partition("=")
        open_, _, close = window.partition("-")
        if not day or not open_ or not close:
            raise ValueError(f"Invalid hours {value!r}. Use day=HH:MM-HH:MM")
        hours[day.strip().lower()] = DayHours(open=open_.strip(), close=close.strip())
    return hours


def _appointment_panel(appointment: Appointment, headline: str) -> Panel:
    lines = [
        f"[bold green]✓ {headline}[/bold green]",
        "",
        f"[bold]Id:[/bold] {appointment.id}",
        f"[bold]When:[/bold] {appointment.scheduled_date.isoformat()} {appointment.start_time}-{appointment.end_time}",
        f"[bold]Status:[/bold] {appointment.status.value}",
    ]
    if appointment.cancellation_reason:
        lines.append(f"[bold]Reason:[/bold] {appointment.cancellation_reason}")
    return Panel.fit("\n".join(lines), title=appointment.workshop_id)


def _settings_panel(settings: AppointmentSettings) -> Panel:
    slots = settings.slot_settings
    booking = settings.booking_settings
    lines = [
        f"[bold]Booking:[/bold] {'[green]enabled[/green]' if settings.enabled else '[red]disabled[/red]'}",
        f"[bold]Slots:[/bold] every {slots.slot_interval} min, default {slots.default_duration} min, "
        f"buffer {slots.buffer_time} min",
        f"[bold]Concurrency:[/bold] {slots.effective_max_concurrent}",
        f"[bold]Advance:[/bold] {booking.min_advance_booking:g} h to {booking.max_advance_booking} days",
        f"[bold]Notice:[/bold] cancel {booking.cancellation_deadline} h, reschedule {booking.reschedule_deadline} h",
        f"[bold]Confirmation:[/bold] {'required' if booking.require_confirmation else 'automatic'}",
        f"[bold]Services:[/bold] {', '.join(settings.enabled_services) or '-'}",
    ]
    return Panel.fit("\n".join(lines), title=f"Settings for {settings.workshop_id}")


@app.command()
def availability(
    workshop_id: Annotated[str, typer.Argument(help="Workshop id")],
    start: Annotated[str, typer.Option("--start", help="Start date (YYYY-MM-DD)")],
    end: Annotated[Optional[str], typer.Option("--end", help="End date (YYYY-MM-DD)")] = None,
    duration: Annotated[Optional[float], typer.Option("--duration", "-d", help="Appointment duration in hours")] = None,
    show_all: Annotated[bool, typer.Option("--all", help="Also list unavailable slots with the reason")] = False,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Show bookable slots of a workshop for a date range.
    """
    try:
        config, store = _open_store(config_file, data_file)
        service = SchedulingService(store, config)
        days = service.compute_availability(workshop_id, start, end, duration)
    except (RepairConnectError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print()
    for day in days:
        if not day.is_open:
            console.print(f"[dim]{day.date.isoformat()}: {day.closed_reason}[/dim]")
            continue
        slots = day.slots if show_all else day.available_slots()
        if not slots:
            console.print(f"[yellow]{day.date.isoformat()}: no available slots[/yellow]")
            continue
        console.print(_slot_table(f"{day.date.format('dddd')} {day.date.isoformat()} ({day.window.describe()})", slots, show_all))
    console.print()


@app.command("check-slot")
def check_slot(
    workshop_id: Annotated[str, typer.Argument(help="Workshop id")],
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    start_time: Annotated[str, typer.Argument(help="Start time (HH:MM)")],
    duration: Annotated[float, typer.Option("--duration", "-d", help="Appointment duration in hours")] = 2.0,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Check whether a single slot can be booked.
    """
    try:
        config, store = _open_store(config_file, data_file)
        result = SchedulingService(store, config).validate_slot(workshop_id, date, start_time, duration)
    except (RepairConnectError, FileNotFoundError, ValueError) as e:
        _fail(e)

    if result.available:
        console.print(f"\n[bold green]✓ {date} {start_time} is available[/bold green]\n")
        return

    console.print(f"\n[bold red]✗ {date} {start_time} is not available:[/bold red] {result.reason}\n")
    if result.alternatives:
        console.print(_slot_table("Alternatives", result.alternatives))
        console.print()


@app.command()
def estimate(
    workshop_id: Annotated[str, typer.Argument(help="Workshop id")],
    services: Annotated[Optional[List[str]], typer.Argument(help="Service types, e.g. oil_change diagnostic")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Estimate the appointment length for a set of services.
    """
    try:
        config, store = _open_store(config_file, data_file)
        hours = SchedulingService(store, config).estimate_duration(workshop_id, services or [])
    except (RepairConnectError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(f"Estimated duration: [bold]{hours:g} h[/bold]")


@app.command()
def book(
    workshop_id: Annotated[str, typer.Argument(help="Workshop id")],
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    start_time: Annotated[str, typer.Argument(help="Start time (HH:MM)")],
    customer: Annotated[str, typer.Option("--customer", help="Customer id")],
    service: Annotated[Optional[List[str]], typer.Option("--service", "-s", help="Service type (repeatable)")] = None,
    duration: Annotated[Optional[float], typer.Option("--duration", "-d", help="Duration in hours; estimated from services if omitted")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Book an appointment.
    """
    try:
        config, store = _open_store(config_file, data_file)
        appointment = SchedulingService(store, config).book_appointment(
            workshop_id,
            customer,
            date,
            start_time,
            duration=duration,
            services=service or [],
        )
    except (RepairConnectError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(_appointment_panel(appointment, "Appointment booked"))


@app.command()
def cancel(
    workshop_id: Annotated[str, typer.Argument(help="Workshop id")],
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    caller: Annotated[str, typer.Option("--caller", help="Customer or workshop id")],
    reason: Annotated[Optional[str], typer.Option("--reason", help="Cancellation reason")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Cancel an appointment.
    """
    try:
        config, store = _open_store(config_file, data_file)
        appointment = SchedulingService(store, config).cancel_appointment(
            workshop_id, appointment_id, caller, reason
        )
    except (RepairConnectError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(_appointment_panel(appointment, "Appointment cancelled"))


@app.command()
def reschedule(
    workshop_id: Annotated[str, typer.Argument(help="Workshop id")],
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    date: Annotated[str, typer.Argument(help="New date (YYYY-MM-DD)")],
    start_time: Annotated[str, typer.Argument(help="New start time (HH:MM)")],
    caller: Annotated[str, typer.Option("--caller", help="Customer or workshop id")],
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Move an appointment to another date and time.
    """
    try:
        config, store = _open_store(config_file, data_file)
        appointment = SchedulingService(store, config).reschedule_appointment(
            workshop_id, appointment_id, caller, date, start_time
        )
    except (RepairConnectError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(_appointment_panel(appointment, "Appointment rescheduled"))


@app.command()
def suggest(
    workshop_id: Annotated[str, typer.Argument(help="Workshop id")],
    dates: Annotated[List[str], typer.Argument(help="Preferred dates (YYYY-MM-DD)")],
    time_range: Annotated[Optional[List[str]], typer.Option("--range", "-r", help="Preferred start times as HH:MM-HH:MM (repeatable)")] = None,
    duration: Annotated[Optional[float], typer.Option("--duration", "-d", help="Appointment duration in hours")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Suggest slots matching preferred dates and times.
    """
    try:
        ranges = [tuple(part.strip() for part in value.split("-", 1)) for value in time_range or []]
        if any(len(pair) != 2 for pair in ranges):
            raise ValueError("Invalid range. Use HH:MM-HH:MM")
        config, store = _open_store(config_file, data_file)
        result = SchedulingService(store, config).find_optimal_slots(
            workshop_id, dates, duration=duration, preferred_time_ranges=ranges or None
        )
    except (RepairConnectError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print()
    if result.preferred:
        console.print(_slot_table("Preferred", result.preferred))
    else:
        console.print("[yellow]No slots match the preferred times.[/yellow]")
    if result.alternatives:
        console.print(_slot_table("Alternatives", result.alternatives))
    console.print()


@app.command()
def compare(
    workshop: Annotated[List[str], typer.Option("--workshop", "-w", help="Workshop id (repeatable)")],
    duration: Annotated[Optional[float], typer.Option("--duration", "-d", help="Appointment duration in hours")] = None,
    start: Annotated[Optional[str], typer.Option("--start", help="First day (YYYY-MM-DD); defaults to today")] = None,
    days: Annotated[int, typer.Option("--days", help="Days to compare")] = 7,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Compare how soon several workshops can take an appointment.
    """
    try:
        config, store = _open_store(config_file, data_file)
        results = SchedulingService(store, config).compare_workshop_availability(
            workshop, duration=duration, start_date=start, days=days
        )
    except (RepairConnectError, FileNotFoundError, ValueError) as e:
        _fail(e)

    table = Table(title="Workshop availability", show_header=True, header_style="bold cyan")
    table.add_column("Workshop", style="bold yellow")
    table.add_column("Next slot")
    table.add_column("Free slots", justify="right")
    table.add_column("Wait (days)", justify="right")
    for result in results:
        table.add_row(
            result.workshop_name,
            str(result.next_slot) if result.next_slot else "[dim]none[/dim]",
            str(result.available_slots),
            str(result.wait_days),
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def status(
    workshop_id: Annotated[str, typer.Argument(help="Workshop id")],
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Show whether a workshop is open now and how today is booked.
    """
    try:
        config, store = _open_store(config_file, data_file)
        current = SchedulingService(store, config).workshop_current_status(workshop_id)
    except (RepairConnectError, FileNotFoundError, ValueError) as e:
        _fail(e)

    lines = [
        "[bold green]Open now[/bold green]" if current.is_open else "[bold red]Closed now[/bold red]",
        f"[bold]Today:[/bold] {current.available_today} free / {current.booked_today} booked "
        f"of {current.total_today} one-hour slots",
        f"[bold]Next slot:[/bold] {current.next_slot or '-'}",
    ]
    if current.current_appointment is not None:
        appointment = current.current_appointment
        lines.append(
            f"[bold]Current:[/bold] {appointment.start_time}-{appointment.end_time} ({appointment.id})"
        )
    console.print(Panel.fit("\n".join(lines), title=workshop_id))


@app.command("add-workshop")
def add_workshop(
    workshop_id: Annotated[str, typer.Argument(help="Workshop id")],
    name: Annotated[str, typer.Option("--name", help="Business name")],
    hours: Annotated[Optional[List[str]], typer.Option("--hours", help="Opening hours as day=HH:MM-HH:MM (repeatable); unlisted days are closed")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Register a workshop.
    """
    try:
        config, store = _open_store(config_file, data_file)
        workshop = SchedulingService(store, config).register_workshop(
            workshop_id, name, _parse_hours(hours) if hours else None
        )
    except (RepairConnectError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(f"[bold green]✓ Registered {workshop.name} ({workshop.id})[/bold green]")
    console.print("[dim]Booking stays disabled until enabled with the settings command.[/dim]")


@app.command()
def settings(
    workshop_id: Annotated[str, typer.Argument(help="Workshop id")],
    enabled: Annotated[Optional[bool], typer.Option("--enable/--disable", help="Turn online booking on or off")] = None,
    interval: Annotated[Optional[int], typer.Option("--interval", help="Minutes between slot starts")] = None,
    default_duration: Annotated[Optional[int], typer.Option("--default-duration", help="Default appointment length in minutes")] = None,
    buffer: Annotated[Optional[int], typer.Option("--buffer", help="Minutes kept free around appointments")] = None,
    max_concurrent: Annotated[Optional[int], typer.Option("--max-concurrent", help="Appointments allowed at once")] = None,
    overlapping: Annotated[Optional[bool], typer.Option("--overlapping/--no-overlapping", help="Allow concurrent appointments")] = None,
    min_advance: Annotated[Optional[float], typer.Option("--min-advance", help="Minimum booking notice in hours")] = None,
    max_advance: Annotated[Optional[int], typer.Option("--max-advance", help="Maximum booking horizon in days")] = None,
    confirmation: Annotated[Optional[bool], typer.Option("--confirmation/--no-confirmation", help="Require the workshop to confirm bookings")] = None,
    service: Annotated[Optional[List[str]], typer.Option("--service", "-s", help="Offered service type (repeatable); replaces the list")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Show or change a workshop's appointment settings.
    """
    slot_changes = {
        "slot_interval": interval,
        "default_duration": default_duration,
        "buffer_time": buffer,
        "max_concurrent_appointments": max_concurrent,
        "allow_overlapping": overlapping,
    }
    booking_changes = {
        "min_advance_booking": min_advance,
        "max_advance_booking": max_advance,
        "require_confirmation": confirmation,
    }
    changes = {
        "enabled": enabled,
        "enabled_services": service or None,
        "slot_settings": {key: value for key, value in slot_changes.items() if value is not None},
        "booking_settings": {key: value for key, value in booking_changes.items() if value is not None},
    }
    changes = {key: value for key, value in changes.items() if value not in (None, {})}

    try:
        config, store = _open_store(config_file, data_file)
        scheduling = SchedulingService(store, config)
        if changes:
            current = scheduling.update_settings(workshop_id, workshop_id, changes)
        else:
            current = scheduling.get_settings(workshop_id)
    except (RepairConnectError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(_settings_panel(current))


@app.command()
def quotes(
    workshop_id: Annotated[str, typer.Argument(help="Workshop id")],
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    List quotations a workshop can still quote on.
    """
    try:
        config, store = _open_store(config_file, data_file)
        open_quotations = BiddingService(store, config).list_open_for_workshop(workshop_id)
    except (RepairConnectError, FileNotFoundError, ValueError) as e:
        _fail(e)

    if not open_quotations:
        console.print("[yellow]No open quotations.[/yellow]")
        return

    table = Table(title=f"Open quotations for {workshop_id}", show_header=True, header_style="bold cyan")
    table.add_column("Id", style="bold yellow")
    table.add_column("Vehicle")
    table.add_column("Services", style="dim")
    table.add_column("Status")
    table.add_column("Quotes", justify="right")
    table.add_column("Expires", style="dim")

    for quotation in open_quotations:
        own = quotation.quote_for_workshop(workshop_id)
        table.add_row(
            quotation.id,
            quotation.vehicle.title,
            ", ".join(quotation.requested_services),
            quotation.status.value if own is None else f"{quotation.status.value} (yours: {own.status.value})",
            str(len(quotation.quotes)),
            quotation.expires_at.to_date_string() if quotation.expires_at else "-",
        )

    console.print()
    console.print(table)
    console.print()


@app.command("create-quotation")
def create_quotation(
    customer: Annotated[str, typer.Option("--customer", help="Customer id")],
    make: Annotated[str, typer.Option("--make", help="Vehicle make")],
    model: Annotated[str, typer.Option("--model", help="Vehicle model")],
    workshop: Annotated[List[str], typer.Option("--workshop", "-w", help="Invited workshop id (repeatable)")],
    year: Annotated[Optional[int], typer.Option("--year", help="Vehicle year")] = None,
    service: Annotated[Optional[List[str]], typer.Option("--service", "-s", help="Requested service type (repeatable)")] = None,
    description: Annotated[Optional[str], typer.Option("--description", help="Problem description")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Request quotes from a set of workshops.
    """
    try:
        config, store = _open_store(config_file, data_file)
        quotation = BiddingService(store, config).create_quotation(
            customer,
            Vehicle(make=make, model=model, year=year),
            workshop,
            requested_services=service or [],
            description=description,
        )
    except (RepairConnectError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(_quotation_panel(quotation))


@app.command("submit-quote")
def submit_quote(
    quotation_id: Annotated[str, typer.Argument(help="Quotation id")],
    workshop: Annotated[str, typer.Option("--workshop", "-w", help="Workshop id")],
    amount: Annotated[str, typer.Option("--amount", help="Total amount")],
    duration: Annotated[float, typer.Option("--duration", "-d", help="Estimated job duration in hours")],
    currency: Annotated[Optional[str], typer.Option("--currency", help="Currency code; defaults to the configured currency")] = None,
    notes: Annotated[Optional[str], typer.Option("--notes", help="Notes for the customer")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Submit or update a workshop's quote.
    """
    try:
        config, store = _open_store(config_file, data_file)
        quotation = BiddingService(store, config).submit_quote(
            quotation_id, workshop, amount, duration, currency=currency, notes=notes
        )
    except (RepairConnectError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(_quotation_panel(quotation))


@app.command()
def accept(
    quotation_id: Annotated[str, typer.Argument(help="Quotation id")],
    quote_id: Annotated[str, typer.Argument(help="Quote id")],
    customer: Annotated[str, typer.Option("--customer", help="Customer id")],
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Accept a quote; every competing quote is declined.
    """
    try:
        config, store = _open_store(config_file, data_file)
        quotation = BiddingService(store, config).accept_quote(quotation_id, quote_id, customer)
    except (RepairConnectError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(_quotation_panel(quotation))


@app.command()
def decline(
    quotation_id: Annotated[str, typer.Argument(help="Quotation id")],
    quote_id: Annotated[str, typer.Argument(help="Quote id")],
    customer: Annotated[str, typer.Option("--customer", help="Customer id")],
    reason: Annotated[Optional[str], typer.Option("--reason", help="Reason shown to the workshop")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Decline a single quote.
    """
    try:
        config, store = _open_store(config_file, data_file)
        quotation = BiddingService(store, config).decline_quote(quotation_id, quote_id, customer, reason)
    except (RepairConnectError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(_quotation_panel(quotation))


@app.command()
def notifications(
    user_id: Annotated[str, typer.Argument(help="Recipient (workshop) id")],
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    List notifications for a workshop.
    """
    try:
        config, store = _open_store(config_file, data_file)
        records = BiddingService(store, config).list_notifications(user_id)
    except (RepairConnectError, FileNotFoundError, ValueError) as e:
        _fail(e)

    if not records:
        console.print("[yellow]No notifications.[/yellow]")
        return

    for notification in records:
        console.print(f"[bold]{notification.title}[/bold] [dim]({notification.type.value})[/dim]")
        console.print(f"  {notification.message}")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]repairconnect[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
