"""Interactive CLI application."""
from datetime import date, timedelta

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table

from ielts_prep import api
from ielts_prep.config import Config, configure_logging
from ielts_prep.db import DEFAULT_DB_PATH, init_db
from ielts_prep.dashboard import get_band_color, get_band_label
from ielts_prep.seed import is_seeded, seed_all

console = Console()

EXIT_WORDS = ("q", "menu")
DEFAULT_PLAN_DAYS = 30


class SessionExitRequested(Exception):
    """Raised when the user leaves an exam part-way through."""


def session_prompt(prompt: str, **kwargs) -> str:
    answer = Prompt.ask(prompt, **kwargs)
    if answer is not None and answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def show_error(result: dict) -> None:
    error = result["error"]
    field = f" ({error['field']})" if error.get("field") else ""
    console.print(f"[red]{error['message']}{field}[/red]")


def show_welcome():
    console.print(Panel(
        "[bold]IELTS General Training[/bold]\n[dim]Mock Tests and Study Planner[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("tests", "List available tests"),
        ("take", "Start or resume a test"),
        ("generate", "Build a practice test"),
        ("history", "Your attempts"),
        ("plan", "Study plan"),
        ("dashboard", "Band scores + progress"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def show_score(score: dict) -> None:
    band = score["band"]
    color = get_band_color(band)
    console.print(Panel(
        f"Correct: [bold]{score['correct']}/{score['total']}[/bold] ({score['percentage']}%)\n"
        f"Band: [bold {color}]{band}[/bold {color}] {get_band_label(band)}",
        title="Result", border_style=color,
    ))


def ask_answer(question: dict, current=None) -> str | None:
    """Show one question and read the answer. Empty input keeps the current one."""
    console.print(f"\n[bold]{question['section'].title()}[/bold] [dim]{question['type']}[/dim]")
    console.print(question["content"])
    options = question.get("options")
    if isinstance(options, dict):
        for key, text in options.items():
            console.print(f"  [cyan]{key})[/cyan] {text}")
    elif isinstance(options, list):
        for text in options:
            console.print(f"  [cyan]-[/cyan] {text}")
    if question["type"] == "true_false_not_given":
        console.print("  [dim]true / false / not given[/dim]")
    answer = session_prompt("Your answer", default="" if current is None else str(current))
    return answer.strip() or None


def run_exam(db_path: str, attempt_id: int) -> dict | None:
    """Walk through every question of an attempt, autosaving as it goes.

    Returns the completed attempt, or None if the user left early.
    """
    result = api.get_attempt(db_path, attempt_id)
    if result["status"] != 200:
        show_error(result)
        return None
    details = result["data"]
    test = details["test"]
    if test is None:
        console.print("[yellow]This attempt's test no longer exists.[/yellow]")
        return api.complete_attempt(db_path, attempt_id)["data"]
    answers = {a["question_id"]: a["answer"] for a in details["answers"]}
    passages = {p["id"]: p for p in details["passages"]}
    shown_passages = set()
    console.print(f"\n[bold]{test['title']}[/bold] [dim](type 'q' to pause)[/dim]")
    try:
        for question in test["questions"]:
            expiry = api.expire_attempt(db_path, attempt_id)
            if expiry["status"] == 200 and expiry["data"]["status"] == "completed":
                console.print("[yellow]Time is up![/yellow]")
                return expiry["data"]
            pid = question.get("passage_id")
            if pid in passages and pid not in shown_passages:
                passage = passages[pid]
                console.print(Panel(passage["content"], title=passage["title"], border_style="cyan"))
                shown_passages.add(pid)
            answer = ask_answer(question, answers.get(question["id"]))
            if answer is None:
                continue
            saved = api.submit_answer(db_path, attempt_id, {"questionId": question["id"], "answer": answer})
            if saved["status"] != 200:
                show_error(saved)
    except SessionExitRequested:
        console.print(f"[dim]Progress saved. Resume attempt {attempt_id} with 'take'.[/dim]")
        return None
    completed = api.complete_attempt(db_path, attempt_id)
    if completed["status"] != 200:
        show_error(completed)
        return None
    return completed["data"]


def cmd_tests(db_path: str):
    result = api.list_tests(db_path)
    table = Table(title="Tests")
    table.add_column("ID", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Type")
    for t in result["data"]:
        table.add_row(str(t["id"]), t["title"], "Mock" if t["is_system"] else "Generated")
    console.print(table)


def cmd_take(db_path: str, user_id: str):
    in_progress = [a for a in api.list_attempts(db_path, user_id)["data"] if a["status"] == "in_progress"]
    attempt_id = None
    if in_progress and Confirm.ask(f"Resume attempt {in_progress[0]['id']}?", default=True):
        attempt_id = in_progress[0]["id"]
    else:
        cmd_tests(db_path)
        test_id = IntPrompt.ask("Test ID")
        created = api.create_attempt(db_path, user_id, {"testId": test_id})
        if created["status"] != 201:
            show_error(created)
            return
        attempt_id = created["data"]["id"]
    attempt = run_exam(db_path, attempt_id)
    if attempt and attempt.get("score"):
        show_score(attempt["score"])


def cmd_generate(db_path: str):
    raw = Prompt.ask("Sections (comma separated)", default="listening,reading")
    sections = [s.strip().lower() for s in raw.split(",") if s.strip()]
    result = api.generate_test(db_path, {"sections": sections})
    if result["status"] != 201:
        show_error(result)
        return
    console.print(f"[green]Created test {result['data']['id']}: {result['data']['title']}[/green]")


def cmd_history(db_path: str, user_id: str):
    table = Table(title="Your Attempts")
    table.add_column("ID", justify="right")
    table.add_column("Test", justify="right")
    table.add_column("Started")
    table.add_column("Status")
    table.add_column("Band", justify="right")
    for a in api.list_attempts(db_path, user_id)["data"]:
        band = a["score"]["band"] if a["score"] else None
        table.add_row(
            str(a["id"]),
            str(a["test_id"] or "-"),
            (a["started_at"] or "")[:16].replace("T", " "),
            a["status"],
            str(band) if band is not None else "-",
        )
    console.print(table)


def show_plan(plan: dict) -> None:
    data = plan["plan_data"]
    console.print(Panel(
        f"Target band [bold]{plan['target_band']}[/bold]  |  Exam {plan['exam_date'][:10]}  |  {data['mode']}\n"
        f"[cyan]Focus: {', '.join(data['focus_areas'])}[/cyan]",
        title="Your Study Plan", border_style="blue",
    ))
    for goal in data["weekly_goals"]:
        console.print(f"  [bold]Week {goal['week']}[/bold] {goal['goal']}: {goal['focus']}")
    table = Table()
    table.add_column("Day", justify="right")
    table.add_column("Date")
    table.add_column("Section", style="cyan")
    table.add_column("Tasks")
    table.add_column("Min", justify="right")
    for day in data["daily_tasks"]:
        table.add_row(str(day["day"]), day["date"], day["section"], "\n".join(day["tasks"]),
                      str(day["estimated_minutes"]))
    console.print(table)
    for tip in data["tips"]:
        console.print(f"  [dim]- {tip}[/dim]")


def cmd_plan(db_path: str, user_id: str):
    current = api.get_study_plan(db_path, user_id)
    if current["status"] == 200:
        show_plan(current["data"])
        if not Confirm.ask("Create a new plan?", default=False):
            return
    band = Prompt.ask(
        "Target band", choices=[str(b) for b in Config.PLAN_TARGET_BANDS], default="7",
    )
    suggested = date.today() + timedelta(days=DEFAULT_PLAN_DAYS)
    exam_date = Prompt.ask("Exam date (YYYY-MM-DD)", default=suggested.isoformat())
    created = api.create_study_plan(db_path, user_id, {"targetBand": band, "examDate": exam_date})
    if created["status"] != 201:
        show_error(created)
        return
    show_plan(created["data"])


def cmd_dashboard(db_path: str, user_id: str):
    data = api.get_dashboard(db_path, user_id)["data"]
    stats = data["stats"]
    average = stats["average_band"]
    if average is None:
        console.print("[yellow]Complete a test to see your band scores.[/yellow]")
        return
    color = get_band_color(average)
    console.print(Panel(
        f"Average band: [bold {color}]{average}[/bold {color}] {get_band_label(average)}\n"
        f"Best: [bold]{stats['best_band']}[/bold]  |  Latest: [bold]{stats['latest_band']}[/bold]  |  "
        f"Tests completed: [bold]{stats['tests_completed']}[/bold]",
        title="Progress Dashboard", border_style="blue",
    ))
    table = Table(title="Section Breakdown")
    table.add_column("Section", style="cyan")
    table.add_column("Correct", justify="right")
    table.add_column("Accuracy", justify="right")
    for s in data["sections"]:
        table.add_row(s["section"].title(), f"{s['correct']}/{s['answered']}", f"{s['accuracy']}%")
    console.print(table)


def main():
    configure_logging()
    db_path = DEFAULT_DB_PATH
    user_id = Config.USER_ID
    init_db(db_path)
    first_run = not is_seeded(db_path)
    if first_run:
        console.print("[dim]Setting up for first use...[/dim]")
    seed_all(db_path)
    if first_run:
        console.print("[green]Ready![/green]\n")

    show_welcome()

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="take").strip().lower()
        try:
            if choice == "tests":
                cmd_tests(db_path)
            elif choice == "take":
                cmd_take(db_path, user_id)
            elif choice == "generate":
                cmd_generate(db_path)
            elif choice == "history":
                cmd_history(db_path, user_id)
            elif choice == "plan":
                cmd_plan(db_path, user_id)
            elif choice == "dashboard":
                cmd_dashboard(db_path, user_id)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]Good luck on your exam![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
