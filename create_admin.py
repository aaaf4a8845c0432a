import getpass
from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlalchemy.orm import Session
from database import SessionLocal, engine
import models
from auth import get_password_hash, get_user


_email_adapter = TypeAdapter(EmailStr)


def validate_email(email: str) -> str:
    """Apply the same address rules as registration. Raises ValueError on bad input."""
    try:
        return _email_adapter.validate_python(email)
    except ValidationError:
        raise ValueError(f"'{email}' is not a valid email address.")


def create_admin(db: Session, email: str, password: str, first_name: str, last_name: str = ""):
    """Create a verified admin account and return it."""
    admin_user = models.User(
        email=validate_email(email),
        first_name=first_name,
        last_name=last_name or None,
        hashed_password=get_password_hash(password),
        role="admin",
        is_verified=True,
    )
    db.add(admin_user)
    db.commit()
    db.refresh(admin_user)
    return admin_user


def promote_to_admin(db: Session, user: models.User):
    """Give an existing account admin rights. Admins are always verified."""
    user.role = "admin"
    user.is_verified = True
    db.commit()
    return user


def _ask_password():
    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Repeat password: "):
        print("\nThe two passwords differ, nothing was created.")
        return None
    return password


def run_cli():
    """Interactive setup of the first UniWiz administrator."""
    print("=== UniWiz admin setup ===")
    db: Session = SessionLocal()
    try:
        try:
            email = validate_email(input("Email: ").strip())
        except ValueError as exc:
            print(f"\n{exc}")
            return

        existing_user = get_user(db, email=email)
        if existing_user:
            if existing_user.role == "admin":
                print(f"\n{email} is already an admin.")
                return
            answer = input(f"{email} is registered as a {existing_user.role}. Make them an admin? (y/n): ")
            if answer.strip().lower() == "y":
                promote_to_admin(db, existing_user)
                print(f"{email} is now an admin.")
            return

        first_name = input("First name: ").strip()
        last_name = input("Last name (optional): ").strip()
        if not first_name:
            print("\nA first name is required.")
            return

        password = _ask_password()
        if not password:
            return

        admin_user = create_admin(db, email, password, first_name, last_name)
        print(f"\nAdmin account #{admin_user.id} created for {admin_user.display_name} <{email}>.")
    finally:
        db.close()


if __name__ == "__main__":
    models.Base.metadata.create_all(bind=engine)
    run_cli()
