# cli.py
import argparse
import asyncio
import json
import sys

from core.composer import create_caption
from core.errors import CaptionError, ConfigurationError, QuotaExceeded
from core.logger import get_logger
from generators.nsfw_fallback import nsfw_caption_fallback
from models import GenerationRequest, Platform, PromotionMode
from personas.voice_guides import VOICE_GUIDES

log = get_logger("Captions")

EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_QUOTA = 3


def _add_tone_args(p: argparse.ArgumentParser):
    p.add_argument("--platform", choices=[x.value for x in Platform], default="instagram")
    p.add_argument("--voice", default="flirty_playful", help="Voice id (see `voices`)")
    p.add_argument("--style", default="authentic")
    p.add_argument("--mood", default="engaging")
    p.add_argument("--nsfw", action="store_true", help="Allow NSFW captions")
    p.add_argument("--promotion", choices=[m.value for m in PromotionMode], default="none")
    p.add_argument("--creator", help="Creator id used to look up the promotion link")
    p.add_argument("--promotion-url", help="Override the creator's promotion link")
    p.add_argument("--no-hashtags", action="store_true")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Caption generation CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    p_image = sub.add_parser("image", help="Caption an image (URL, data URL or base64)")
    p_image.add_argument("source")
    p_image.add_argument("--fallback-theme", help="Theme used if the image cannot be processed")
    p_image.add_argument("--prefer-nsfw-fallback", action="store_true")
    _add_tone_args(p_image)

    p_text = sub.add_parser("text", help="Caption a theme without an image")
    p_text.add_argument("theme")
    p_text.add_argument("--context")
    _add_tone_args(p_text)

    p_rewrite = sub.add_parser("rewrite", help="Rewrite an existing caption")
    p_rewrite.add_argument("caption")
    p_rewrite.add_argument("--image-url")
    _add_tone_args(p_rewrite)

    p_nsfw = sub.add_parser("nsfw", help="Run only the classifier + plain caption fallback")
    p_nsfw.add_argument("source")

    sub.add_parser("voices", help="List known voice ids")
    return parser


def request_from_args(args) -> GenerationRequest:
    fields = dict(
        platform=args.platform,
        voice=args.voice,
        style=args.style,
        mood=args.mood,
        nsfw=args.nsfw,
        promotion_mode=args.promotion,
        include_hashtags=not args.no_hashtags,
        creator_id=args.creator,
        promotion_url=args.promotion_url,
    )
    if args.command == "image":
        key = "image_url" if args.source.startswith(("http://", "https://", "data:")) else "image_base64"
        fields[key] = args.source
    elif args.command == "text":
        fields.update(theme=args.theme, context=args.context)
    else:
        fields.update(existing_caption=args.caption, image_url=args.image_url)
    return GenerationRequest(**fields)


async def run(args) -> dict:
    if args.command == "voices":
        return {voice: guide.persona for voice, guide in VOICE_GUIDES.items()}
    if args.command == "nsfw":
        result = await nsfw_caption_fallback(args.source)
        return result.model_dump(mode="json")

    request = request_from_args(args)
    extra = {}
    if args.command == "image":
        extra = dict(fallback_theme=args.fallback_theme, prefer_nsfw_fallback=args.prefer_nsfw_fallback)
    result = await create_caption(request, **extra)
    return result.model_dump(mode="json")


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        payload = asyncio.run(run(args))
    except QuotaExceeded as exc:
        log.error(f"❌ Quota exceeded, wait or upgrade: {exc}")
        return EXIT_QUOTA
    except (ConfigurationError, ValueError) as exc:
        log.error(f"❌ Invalid request or configuration: {exc}")
        return EXIT_CONFIG
    except CaptionError as exc:
        log.error(f"❌ {exc.__class__.__name__}: {exc}")
        return EXIT_FAILED

    print(json.dumps(payload, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
