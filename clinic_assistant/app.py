"""
Console runner for the clinic assistant.
Keeps the transcript and context in memory and prints each answer with its source.
"""

import argparse
import asyncio

from clinic_assistant import config
from clinic_assistant.assistant import build_assistant
from clinic_assistant.models.domain import CallerIdentity, Turn, TurnRequest
from clinic_assistant.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Centro Médico Familiar - asistente virtual")
    parser.add_argument("--doctor-id", type=int, help="Run as the clinician with this id")
    parser.add_argument("--doctor-name", help="Clinician display name")
    return parser.parse_args(argv)


async def run_console_chat(identity: CallerIdentity | None = None) -> None:
    """Async main loop for console chat interaction."""
    assistant = build_assistant()
    transcript: list[Turn] = []
    context = None

    logger.info("console_mode_started", clinician=identity is not None)
    print("\n" + "=" * 60)
    print("Centro Médico Familiar - escriba 'salir' para terminar")
    print("=" * 60 + "\n")

    while True:
        try:
            question = input("\nUsted: ").strip()
        except (KeyboardInterrupt, EOFError):
            logger.info("conversation_interrupted_by_user")
            break
        if question.lower() in ("salir", "exit", "quit"):
            break
        if not question:
            continue

        request = TurnRequest(
            text=question,
            prior_turns=tuple(transcript),
            caller_is_clinician=identity is not None,
            caller_identity=identity,
        )
        response = await assistant.handle_turn(request, context)
        context = response.context
        transcript.extend([Turn("user", question), Turn("assistant", response.text)])

        print(f"\nAsistente [{response.source.value}]:\n{response.text}")

    logger.info("conversation_ended", turns=len(transcript) // 2)
    print("\n¡Hasta pronto!")


def main(argv=None) -> None:
    args = parse_args(argv)
    settings = config.get_settings()
    configure_logging(level=settings.log_level, use_structured=settings.structured_logs)

    identity = None
    if args.doctor_id is not None:
        identity = CallerIdentity(doctor_id=args.doctor_id, name=args.doctor_name or "Doctor")
    asyncio.run(run_console_chat(identity))


if __name__ == "__main__":
    main()
