from __future__ import annotations

import argparse

from propmarket.cli.seed_demo import seed_demo


def main() -> None:
    p = argparse.ArgumentParser(prog="python -m propmarket.cli")
    p.add_argument("--password", default="demo1234")
    p.add_argument("--approve", type=int, default=2, help="how many sample listings to approve")
    args = p.parse_args()

    out = seed_demo(password=args.password, approve=args.approve)
    print(
        {
            "ok": True,
            "admin_email": out.admin_email,
            "promoter_email": out.promoter_email,
            "customer_email": out.customer_email,
            "listing_ids": out.listing_ids,
            "live_ids": out.live_ids,
        }
    )


if __name__ == "__main__":
    main()
