"""Flask CLI commands: demo data, admin bootstrap and the earnings job.

``flask process-earnings`` is meant to be run daily by an external scheduler
(cron, a Kubernetes CronJob or a Supabase scheduled function).
"""
import json
import logging

import click

from core.imports import date
from core.extensions import db, bcrypt
from core.auth import validate_email, check_password_strength
from core.errors import ValidationError
from models.userModel import User
from models.productModels import Category, Product
from models.earningsModels import CommissionRate
from routes.categories import slugify
from services.earnings import process_earnings_availability, find_earnings_issues, has_issues

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "DemoPass123"

DEMO_USERS = [
    {"email": "admin@fastshop.local", "display_name": "Demo Admin", "role": "admin"},
    {"email": "manager@fastshop.local", "display_name": "Demo Manager", "role": "manager"},
    {"email": "seller@fastshop.local", "display_name": "Demo Seller", "role": "seller",
     "business_name": "Demo Goods", "seller_status": "approved"},
    {"email": "customer@fastshop.local", "display_name": "Demo Customer", "role": "customer"},
]

DEMO_CATEGORIES = ["Electronics", "Fashion", "Books"]

DEMO_PRODUCTS = [
    {
        "title": "Smartphone X10",
        "price": 49900,
        "stock": 25,
        "description": "Latest model smartphone with AI camera.",
        "category": "Electronics",
    },
    {
        "title": "Men's Sneakers",
        "price": 7999,
        "stock": 40,
        "description": "Comfortable and stylish sneakers.",
        "category": "Fashion",
    },
    {
        "title": "Python Programming",
        "price": 3450,
        "stock": 100,
        "description": "A beginner-friendly guide to Python programming.",
        "category": "Books",
    },
]


def _hash(password):
    return bcrypt.generate_password_hash(password).decode('utf-8')


def seed_demo_users():
    created = []
    for data in DEMO_USERS:
        if not User.query.filter_by(email=data["email"]).first():
            db.session.add(User(password=_hash(DEMO_PASSWORD), **data))
            created.append(data["email"])
    db.session.commit()
    return created


def seed_categories():
    created = []
    for name in DEMO_CATEGORIES:
        if not Category.query.filter_by(name=name).first():
            db.session.add(Category(name=name, slug=slugify(name)))
            created.append(name)
    db.session.commit()
    return created


def seed_products():
    seller = User.query.filter_by(email="seller@fastshop.local").first()
    if not seller:
        raise click.ClickException("Demo seller missing; seed users first")

    created = []
    for prod in DEMO_PRODUCTS:
        if Product.query.filter_by(title=prod["title"], seller_id=seller.id).first():
            continue
        category = Category.query.filter_by(name=prod["category"]).first()
        db.session.add(Product(
            seller_id=seller.id,
            category_id=category.id if category else None,
            title=prod["title"],
            description=prod["description"],
            price=prod["price"],
            stock=prod["stock"],
            images=["https://via.placeholder.com/150"],
            approval_status="approved",
            status="active",
        ))
        created.append(prod["title"])
    db.session.commit()
    return created


def seed_global_rate():
    if CommissionRate.query.filter_by(rate_type="global").first():
        return False
    db.session.add(CommissionRate(rate_type="global", commission_percentage=15, is_active=True))
    db.session.commit()
    return True


def register_commands(app):
    @app.cli.command("seed-demo")
    def seed_demo():
        """Create demo accounts, categories, products and a global commission rate."""
        users = seed_demo_users()
        categories = seed_categories()
        products = seed_products()
        rate = seed_global_rate()

        click.echo(f"✅ Users created: {', '.join(users) or 'none (already exist)'}")
        click.echo(f"✅ Categories created: {', '.join(categories) or 'none (already exist)'}")
        click.echo(f"✅ Products created: {', '.join(products) or 'none (already exist)'}")
        click.echo("✅ Global commission rate created" if rate else "ℹ️ Global commission rate already exists")
        if users:
            click.echo(f"Demo password for all accounts: {DEMO_PASSWORD}")

    @app.cli.command("create-admin")
    @click.argument("email")
    @click.argument("password")
    @click.option("--name", default="Administrator", help="Display name")
    def create_admin(email, password, name):
        """Create an admin account."""
        email = email.strip().lower()
        if not validate_email(email):
            raise click.BadParameter("Invalid email address", param_hint="EMAIL")
        try:
            check_password_strength(password)
        except ValidationError as e:
            raise click.BadParameter(e.message, param_hint="PASSWORD")
        if User.query.filter_by(email=email).first():
            raise click.ClickException(f"A user with email {email} already exists")

        db.session.add(User(email=email, password=_hash(password), display_name=name, role="admin"))
        db.session.commit()
        click.echo(f"✅ Admin {email} created")

    @app.cli.command("process-earnings")
    @click.option("--date", "run_date", default=None, help="Treat this YYYY-MM-DD as today")
    def process_earnings(run_date):
        """Release seller earnings whose holding period has ended."""
        today = None
        if run_date:
            try:
                today = date.fromisoformat(run_date)
            except ValueError:
                raise click.BadParameter("Expected YYYY-MM-DD", param_hint="--date")

        result = process_earnings_availability(today)
        click.echo(f"Released {result['count']} earnings totalling {result['total_amount']} cents")

    @app.cli.command("diagnose-earnings")
    def diagnose_earnings():
        """Report orders, sub-orders and earnings that disagree; exit 1 on issues."""
        report = find_earnings_issues()
        click.echo(json.dumps(report, indent=2))
        if has_issues(report):
            logger.warning("Earnings diagnostics found issues")
            raise SystemExit(1)
        click.echo("✅ No earnings issues found")
