import argparse

from fitmatch.database import SessionLocal, create_schema
from fitmatch.repo import Repository
from fitmatch.services.seeding import seed_demo_athletes


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed demo FitMatch athletes")
    parser.add_argument("--n-users", type=int, default=50)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--lat", type=float, default=40.015)
    parser.add_argument("--lon", type=float, default=-105.2705)
    parser.add_argument("--radius-km", type=float, default=40.0)
    args = parser.parse_args()

    create_schema(SessionLocal)
    summary = seed_demo_athletes(
        Repository(SessionLocal),
        n_users=args.n_users,
        seed=args.seed,
        center=(args.lat, args.lon),
        radius_km=args.radius_km,
    )

    print("Seed completed")
    for k, v in summary.items():
        print(f"- {k}: {v}")


if __name__ == "__main__":
    main()
