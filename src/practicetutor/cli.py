"""CLI entry point for PracticeTutor."""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path

import click

from practicetutor.engine.models import AnswerType, FlagType, PracticeMode


def _engine(ctx: click.Context):
    from practicetutor.bank.registry import QuestionBank
    from practicetutor.config.settings import Settings
    from practicetutor.state.attempts import AttemptLog

    settings = Settings.load()
    bank = QuestionBank(ctx.obj.get("bank_dir") or settings.get_bank_dir())

    def topic_of(question_id):
        question = bank.get(question_id)
        return question.topic_id if question else None

    log = AttemptLog(db_path=settings.get_data_dir() / "attempts.db", topic_of=topic_of)
    return settings, bank, log


@click.group(invoke_without_command=True)
@click.option("--bank", "bank_dir", type=click.Path(exists=True, file_okay=False, path_type=Path),
              help="Directory of YAML topic files (defaults to the bundled bank)")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr")
@click.pass_context
def main(ctx: click.Context, bank_dir, verbose: bool) -> None:
    """PracticeTutor: adaptive practice sessions in the terminal."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)
    ctx.ensure_object(dict)
    ctx.obj["bank_dir"] = bank_dir
    if ctx.invoked_subcommand is None:
        ctx.invoke(topics)


@main.command()
@click.pass_context
def topics(ctx: click.Context) -> None:
    """List topics in the question bank."""
    _, bank, _ = _engine(ctx)
    for topic in bank.list_topics():
        active = sum(1 for q in topic.questions if q.status == "active")
        click.echo(f"  {topic.id}: {topic.name} ({active} questions)")


@main.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show accuracy per topic and what is due for review."""
    from practicetutor.engine.history import HistoryIndex

    settings, bank, log = _engine(ctx)
    history = HistoryIndex.from_snapshot(log.fetch_history())
    weak = set(history.weak_topics(
        settings.weak_topics.min_attempts, settings.weak_topics.max_accuracy,
    ))
    aggregates = history.topics
    for topic in bank.list_topics():
        agg = aggregates.get(topic.id)
        if agg is None:
            click.echo(f"  {topic.name}: not practiced yet")
            continue
        marker = "  (needs work)" if topic.id in weak else ""
        click.echo(
            f"  {topic.name}: {agg.correct}/{agg.attempts} correct "
            f"({round(agg.accuracy * 100)}%){marker}"
        )
    due = log.due_question_ids(datetime.now(timezone.utc))
    click.echo(f"Due for review: {len(due)}")


@main.command()
@click.option("--mode", type=click.Choice([m.value for m in PracticeMode]), default="topic",
              show_default=True)
@click.option("--topic", "topic_id", help="Topic id (topic mode)")
@click.option("--ids", help="Comma-separated question ids (custom mode)")
@click.option("--count", type=click.IntRange(min=1), help="Session size")
@click.option("--seed", type=int, help="Seed the sampler (repeatable sessions)")
@click.pass_context
def practice(ctx: click.Context, mode: str, topic_id, ids, count, seed) -> None:
    """Run an interactive practice session."""
    import random

    from practicetutor.engine.feedback import empty_pool_message
    from practicetutor.engine.history import HistoryIndex
    from practicetutor.engine.pool import CandidatePoolResolver
    from practicetutor.engine.sampler import SmartSampler
    from practicetutor.engine.session import SessionState, build_session

    settings, bank, log = _engine(ctx)
    if topic_id and bank.get_topic(topic_id) is None:
        raise click.BadParameter(f"Unknown topic: {topic_id}", param_hint="--topic")
    resolver = CandidatePoolResolver(
        bank,
        due_source=log,
        weak_min_attempts=settings.weak_topics.min_attempts,
        weak_max_accuracy=settings.weak_topics.max_accuracy,
    )
    sampler = SmartSampler(
        settings.sampler.to_config(), rng=random.Random(seed) if seed is not None else None,
    )
    question_ids = [i.strip() for i in ids.split(",") if i.strip()] if ids else None

    async def _run() -> None:
        try:
            session = build_session(
                PracticeMode(mode), resolver, HistoryIndex.from_snapshot(log.fetch_history()),
                sampler, count=count, topic_id=topic_id, question_ids=question_ids,
                sink=log, default_tolerance=settings.validation.default_tolerance,
            )
        except ValueError as e:
            raise click.UsageError(str(e)) from None

        if session.state == SessionState.EMPTY:
            message = empty_pool_message(PracticeMode(mode))
            click.echo(message.title)
            click.echo(message.detail)
            return

        try:
            await _drive(session)
        finally:
            await session.drain()

        summary = session.summary()
        click.echo(
            f"\nSession over: {summary['correct']}/{summary['total']} correct "
            f"({summary['accuracy']}%), best streak {summary['bestStreak']}"
        )

    asyncio.run(_run())


async def _drive(session) -> None:
    from practicetutor.engine.feedback import correct_answer_text, verdict_message
    from practicetutor.engine.session import SessionError, SessionState

    while session.state == SessionState.PRESENTING:
        question = session.current_question
        click.echo(f"\n[{session.current_index + 1}/{len(session.questions)}] {question.prompt}")
        choices = getattr(question.correct_answer, "choices", ())
        for n, choice in enumerate(choices, start=1):
            click.echo(f"  {n}. {choice}")

        while session.state == SessionState.PRESENTING:
            raw = click.prompt("Answer (h=hint, f=flag, q=quit)", default="", show_default=False)
            if raw == "q":
                session.abandon()
                return
            if raw == "h":
                hint = session.reveal_hint()
                click.echo(f"Hint: {hint}" if hint else "No more hints.")
                continue
            if raw == "f":
                await _flag(session)
                continue
            try:
                if question.answer_type == AnswerType.MULTIPLE_CHOICE:
                    choice = int(raw) - 1 if raw.strip().isdigit() else None
                    result = await session.submit(choice_index=choice)
                else:
                    result = await session.submit(answer=raw)
            except SessionError as e:
                click.echo(str(e))
                continue
            click.echo(verdict_message(question, result.correct, session.stats.streak))
            # let the background attempt write start before blocking on input
            await asyncio.sleep(0)

        while True:
            raw = click.prompt(
                "Enter=next, s=solution, f=flag/claim", default="", show_default=False,
            )
            if raw == "s":
                steps = session.reveal_solution() or []
                for step in steps:
                    click.echo(f"  - {step}")
                if not steps:
                    click.echo(f"  Answer: {correct_answer_text(question)}")
            elif raw == "f":
                await _flag(session)
            else:
                break
        session.next()


async def _flag(session) -> None:
    from practicetutor.engine.session import SessionError

    flag_type = click.prompt(
        "Issue", type=click.Choice([f.value for f in FlagType]), default=FlagType.OTHER.value,
    )
    comment = click.prompt("Comment", default="", show_default=False)
    try:
        await session.flag(flag_type, comment=comment or None)
    except SessionError as e:
        click.echo(str(e))
        return
    await asyncio.sleep(0)
    click.echo("Thanks, your report was sent to your tutor.")


@main.command()
@click.confirmation_option(prompt="Delete all recorded attempts and flags?")
@click.pass_context
def reset(ctx: click.Context) -> None:
    """Clear the attempt history and pending flags."""
    _, _, log = _engine(ctx)
    log.reset()
    click.echo("Attempt history cleared.")


@main.command()
def serve() -> None:
    """Run the JSON-lines server on stdin/stdout."""
    from practicetutor.server.__main__ import main as serve_main

    serve_main()
