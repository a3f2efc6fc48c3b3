import argparse
import logging
import os
import sys

from dotenv import load_dotenv
from openai import OpenAI, OpenAIError

from common import setup_logging

# Load .env automatically, so you don't need to source it manually
load_dotenv()


def check_openai():
    """Check OpenAI API credentials used by the correction step."""
    key = os.getenv("OPENAI_API_KEY")
    if not key:
        return "Missing"
    client = OpenAI(api_key=key)
    try:
        client.models.list()
        return "Valid"
    except OpenAIError:
        return "Invalid"


def check_model(model: str):
    """Check that the configured correction model is available to this key."""
    key = os.getenv("OPENAI_API_KEY")
    if not key:
        return "Missing"
    client = OpenAI(api_key=key)
    try:
        client.models.retrieve(model)
        return "Valid"
    except OpenAIError:
        return "Invalid"


def main():
    """Perform credential health checks for the correction service."""
    setup_logging(None, "logs/check_credentials.log")
    p = argparse.ArgumentParser(description="Health check for correction credentials")
    p.add_argument("--model", default=os.getenv("CORRECTION_MODEL", "gpt-4.1-mini"),
                   help="Correction model to look up")
    args = p.parse_args()

    results = {}
    results["OpenAI API Key"] = check_openai()
    results[f"Model {args.model}"] = check_model(args.model)

    logging.info("Credential Health Check Summary:")
    for name, status in results.items():
        logging.info(f"  {name:<28}: {status}")

    if any(status != "Valid" for status in results.values()):
        sys.exit(1)


if __name__ == "__main__":
    main()
