#!/usr/bin/env python3
# scripts/get_token.py - Log in against a running API and print the bearer token
import sys
import argparse

import httpx


def main():
    parser = argparse.ArgumentParser(description="Fetch an access token")
    parser.add_argument("--url", default="http://localhost:5002")
    parser.add_argument("--email", default="admin@accounting.com")
    parser.add_argument("--password", default="admin123")
    args = parser.parse_args()

    try:
        response = httpx.post(
            f"{args.url}/api/auth/login",
            json={"email": args.email, "password": args.password},
            timeout=10,
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        print(f"Login failed: {e.response.text}")
        sys.exit(1)
    except httpx.HTTPError as e:
        print(f"Login failed: {e}")
        sys.exit(1)

    print("---TOKEN_START---")
    print(response.json()["data"]["token"])
    print("---TOKEN_END---")


if __name__ == "__main__":
    main()
