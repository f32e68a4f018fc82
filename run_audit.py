import argparse
import asyncio
import json
import sys

from dotenv import load_dotenv

from app.config import Settings
from app.services.errors import AuditError
from app.services.npm_audit import NpmAuditor, parse_dependencies, parse_manifest
from app.services.reports import render_markdown, render_pdf


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run npm audit on the dependencies of a package.json")
    parser.add_argument("manifest", nargs="?", default="package.json")
    parser.add_argument("--markdown", help="write a Markdown report to this path")
    parser.add_argument("--pdf", help="write a PDF report to this path")
    parser.add_argument("--json", action="store_true", help="print the normalized result as JSON")
    args = parser.parse_args(argv)

    load_dotenv()
    try:
        with open(args.manifest, "rb") as f:
            dependencies = parse_dependencies(parse_manifest(f.read()))
        result = asyncio.run(NpmAuditor(Settings.from_env()).audit(dependencies))
    except OSError as e:
        print(f"Cannot read {args.manifest}: {e}", file=sys.stderr)
        return 2
    except AuditError as e:
        print(json.dumps(e.to_dict(), indent=2), file=sys.stderr)
        return 2

    if args.markdown:
        with open(args.markdown, "w", encoding="utf-8") as f:
            f.write(render_markdown(result))
    if args.pdf:
        with open(args.pdf, "wb") as f:
            f.write(render_pdf(result))

    if args.json:
        print(result.model_dump_json(by_alias=True, indent=2))

    summary = result.summary()
    print("Total vulnerabilities:", summary.total)
    print("Critical vulnerabilities:", summary.critical)

    if summary.critical > 0:
        print("CRITICAL vulnerabilities detected!")
        return 1
    print("No critical vulnerabilities found.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
