"""
VocabMaster: bilingual dictionary with spaced-repetition review
----------------------------------------------------------------

Command-line entry point (``vocabmaster`` console script).
"""

import argparse
import asyncio
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .app import App, open_app
from .config import Config, SettingsManager
from .exceptions import AuthError, PersistenceIOError, ValidationError
from .lookup.resolver import AUTH_HINT
from .models import ExtrasKind, LookupResult, WordRecord
from .services.vocabulary_service import SORT_ORDERS
from .utils.logger import setup_logger


def _format_time(timestamp_ms: Optional[int]) -> str:
    if not timestamp_ms:
        return "-"
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M")


def print_record(record: WordRecord, translation: Optional[str] = None) -> None:
    header = record.display_word
    if record.display_word != record.key:
        header = f"{record.display_word} ({record.key})"
    if record.phonetic:
        header = f"{header}  {record.phonetic}"
    print(header)

    translation = record.translation or translation
    if translation:
        print(f"  = {translation}")
    for meaning in record.meanings:
        print(f"  [{meaning.part_of_speech}]")
        for i, definition in enumerate(meaning.definitions, 1):
            print(f"    {i}. {definition.text}")
            if definition.translation:
                print(f"       {definition.translation}")
            if definition.example:
                print(f"       e.g. {definition.example}")


def print_result(result: LookupResult) -> None:
    if not result.found:
        print(f"[!] {result.message}")
        if result.translation_text:
            print(f"  = {result.translation_text}")
        return
    print_record(result.record, result.translation_text)
    print(f"  (via {result.source_tag})")


async def cmd_lookup(app: App, args: argparse.Namespace) -> int:
    result = await app.vocabulary.lookup(" ".join(args.text))
    if result.found and args.translate_definitions:
        result.record = await app.vocabulary.translate_definitions(result.record)
    print_result(result)
    if not result.found:
        return 1
    if args.save:
        stored = await app.vocabulary.save_lookup(result)
        if stored:
            print(f"[OK] Saved '{stored.key}', first review {_format_time(stored.next_review_at)}")
    return 0


async def cmd_due(app: App, args: argparse.Namespace) -> int:
    due = await app.reviews.due_words()
    if not due:
        upcoming = await app.reviews.next_due_timestamp()
        print("Nothing due.")
        if upcoming:
            print(f"Next review: {_format_time(upcoming)}")
        return 0
    for record in due:
        print(f"{record.display_word:<30} {app.scheduler.label(record.level or 0):<14} "
              f"{record.translation}")
    return 0


async def cmd_review(app: App, args: argparse.Namespace) -> int:
    if args.word:
        outcome = await app.reviews.review(args.word, remembered=not args.forgot)
        if outcome is None:
            print(f"[!] '{args.word}' is not in your word list.")
            return 1
        print(f"Level {outcome.level} ({app.scheduler.label(outcome.level)}), "
              f"next review {_format_time(outcome.next_review_at)}")
        return 0

    due = await app.reviews.due_words()
    if not due:
        print("Nothing due.")
        return 0
    for record in due:
        print(f"\n{record.display_word}")
        answer = input("  Remember it? [y/n/q] ").strip().lower()
        if answer == "q":
            break
        print_record(record)
        outcome = await app.reviews.review(record.key, remembered=answer.startswith("y"))
        if outcome:
            print(f"  -> {app.scheduler.label(outcome.level)}, next {_format_time(outcome.next_review_at)}")
    return 0


async def cmd_stats(app: App, args: argparse.Namespace) -> int:
    stats = await app.reviews.stats()
    print(f"Total: {stats['total']}  Learning: {stats['learning']}  "
          f"Mastered: {stats['mastered']}  Due: {stats['due']}")
    return 0


async def cmd_history(app: App, args: argparse.Namespace) -> int:
    records = await app.vocabulary.history(search=args.search, sort=args.sort)
    for record in records[:args.limit] if args.limit else records:
        print(f"{record.display_word:<30} {app.scheduler.label(record.level or 0):<14} "
              f"{_format_time(record.added_at):<18} {record.translation}")
    print(f"({len(records)} words)")
    return 0


async def cmd_export(app: App, args: argparse.Namespace) -> int:
    snapshot = await app.repository.export()
    text = json.dumps(snapshot, ensure_ascii=False, indent=2)
    if args.output:
        Path(args.output).write_text(text, encoding="utf-8")
        print(f"[OK] Exported {snapshot['wordCount']} words to {args.output}")
    else:
        print(text)
    return 0


async def cmd_import(app: App, args: argparse.Namespace) -> int:
    payload = Path(args.file).read_bytes()
    result = await app.repository.import_payload(payload)
    print(f"[OK] Imported {result.imported} words, skipped {result.skipped} already present")
    return 0


async def cmd_export_csv(app: App, args: argparse.Namespace) -> int:
    count = await app.repository.export_csv(args.output)
    print(f"[OK] Wrote {count} rows to {args.output}")
    return 0


async def cmd_extras(app: App, args: argparse.Namespace) -> int:
    value = await app.vocabulary.extras(args.word, ExtrasKind(args.kind))
    if value is None:
        print("[!] No result.")
        return 1
    print(json.dumps(value, ensure_ascii=False, indent=2))
    return 0


async def cmd_delete(app: App, args: argparse.Namespace) -> int:
    if await app.vocabulary.delete(args.word):
        print(f"[OK] Deleted '{args.word}'")
        return 0
    print(f"[!] '{args.word}' is not in your word list.")
    return 1


async def cmd_speak(app: App, args: argparse.Namespace) -> int:
    record = await app.repository.get(args.word) or WordRecord(key=args.word)
    for source in app.vocabulary.pronunciation_sources(record, args.lang):
        print(f"  {source.kind:<13} {source.url or source.voice or '-'}")
    if await app.vocabulary.speak(record, args.output, args.lang):
        print(f"[OK] Saved audio to {args.output}")
        return 0
    print("[!] Speech synthesis failed.")
    return 1


async def cmd_check_llm(app: App, args: argparse.Namespace) -> int:
    ok, message = await app.vocabulary.check_llm()
    print(f"[{'OK' if ok else '!'}] {message}")
    return 0 if ok else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vocabmaster",
        description="Bilingual dictionary lookups with spaced-repetition review.",
    )
    parser.add_argument("--settings", help="Settings JSON file")
    parser.add_argument("--log-level", default=Config.LOG_LEVEL)
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("lookup", help="Look up a word, phrase or Chinese expression")
    p.add_argument("text", nargs="+")
    p.add_argument("--save", action="store_true", help="Add the result to your word list")
    p.add_argument("--translate-definitions", action="store_true")
    p.set_defaults(handler=cmd_lookup)

    p = sub.add_parser("due", help="List words due for review")
    p.set_defaults(handler=cmd_due)

    p = sub.add_parser("review", help="Review due words (or record one answer)")
    p.add_argument("word", nargs="?")
    p.add_argument("--forgot", action="store_true", help="Record the word as forgotten")
    p.set_defaults(handler=cmd_review)

    p = sub.add_parser("stats", help="Show review statistics")
    p.set_defaults(handler=cmd_stats)

    p = sub.add_parser("history", help="List saved words")
    p.add_argument("--search")
    p.add_argument("--sort", choices=SORT_ORDERS, default="newest")
    p.add_argument("--limit", type=int, default=0)
    p.set_defaults(handler=cmd_history)

    p = sub.add_parser("export", help="Export the word list as JSON")
    p.add_argument("-o", "--output")
    p.set_defaults(handler=cmd_export)

    p = sub.add_parser("import", help="Import a JSON export (existing words are kept)")
    p.add_argument("file")
    p.set_defaults(handler=cmd_import)

    p = sub.add_parser("export-csv", help="Export the word list as CSV")
    p.add_argument("output")
    p.set_defaults(handler=cmd_export_csv)

    p = sub.add_parser("extras", help="Conjugations, synonyms or antonyms (LLM)")
    p.add_argument("word")
    p.add_argument("kind", choices=[k.value for k in ExtrasKind])
    p.set_defaults(handler=cmd_extras)

    p = sub.add_parser("delete", help="Remove a word from your list")
    p.add_argument("word")
    p.set_defaults(handler=cmd_delete)

    p = sub.add_parser("speak", help="Render pronunciation audio to an MP3")
    p.add_argument("word")
    p.add_argument("-o", "--output", default="pronunciation.mp3")
    p.add_argument("--lang", default="en-US")
    p.set_defaults(handler=cmd_speak)

    p = sub.add_parser("check-llm", help="Test the LLM connection")
    p.set_defaults(handler=cmd_check_llm)

    return parser


async def run(args: argparse.Namespace) -> int:
    settings = SettingsManager(args.settings) if args.settings else SettingsManager()
    async with open_app(settings) as app:
        return await args.handler(app, args)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logger(level=args.log_level, log_file=Config.LOG_FILE or None)

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\n[!] Aborted by user.")
        return 130
    except ValidationError as e:
        print(f"[ERROR] Import rejected: {e}")
        return 2
    except PersistenceIOError as e:
        print(f"[ERROR] Storage failure: {e}")
        return 3
    except AuthError as e:
        print(f"[ERROR] {e}. {AUTH_HINT}")
        return 4
    except OSError as e:
        print(f"[ERROR] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
