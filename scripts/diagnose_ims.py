"""Check connectivity to the IMS OData service with a caller-supplied token."""
from pathlib import Path
import argparse
import sys

from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parents[1]
load_dotenv(ROOT / ".env")
sys.path.insert(0, str(ROOT))

from packages.ims_client import ImsClient, ImsClientError
from services.parts.fields import DEFAULT_FIELD_CONFIG


def main() -> None:
    parser = argparse.ArgumentParser(description="Fetch one inventoried instance from IMS")
    parser.add_argument("token", help="Bearer token issued by IMS")
    args = parser.parse_args()

    client = ImsClient()
    print(f"IMS base URL: {client.base_url}")
    params = {
        "$filter": f"classification eq '{DEFAULT_FIELD_CONFIG.classification}'",
        "$select": "id,item_number",
        "$top": "1",
    }
    try:
        rows = client.fetch_values(DEFAULT_FIELD_CONFIG.entity, token=args.token, params=params)
    except ImsClientError as exc:
        print(f"IMS request failed: {exc}")
        raise SystemExit(1)
    print(f"{DEFAULT_FIELD_CONFIG.entity} reachable: true")
    print(f"sample rows: {len(rows)}")


if __name__ == "__main__":
    main()
