"""Commission rates and the earnings arithmetic shared by every money path.

All amounts are integer cents. ``calculate_seller_earnings`` is the single
place where a gross amount is turned into commission, fees and the seller's
net; sub-orders and earnings rows are both built from its result, so
``net_amount == gross_amount - commission_amount - processing_fee - platform_fee``
always holds for what gets stored.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP

from core.imports import current_app
from core.extensions import db
from core.errors import ValidationError, NotFoundError
from models.earningsModels import CommissionRate, RATE_TYPES

logger = logging.getLogger(__name__)


def _percent_of(amount, percentage):
    value = Decimal(amount) * Decimal(str(percentage)) / Decimal(100)
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def calculate_commission(amount, rate):
    return _percent_of(amount, rate)


def calculate_seller_earnings(gross_amount, commission_rate, processing_fee_percent=0,
                              processing_fee_fixed=0, platform_fee=0):
    if isinstance(gross_amount, bool) or not isinstance(gross_amount, int) or gross_amount < 0:
        raise ValidationError("Gross amount must be a non-negative integer number of cents")
    if not 0 <= float(commission_rate) <= 100:
        raise ValidationError("Commission rate must be between 0 and 100")
    if processing_fee_percent < 0 or processing_fee_fixed < 0 or platform_fee < 0:
        raise ValidationError("Fees cannot be negative")

    commission_amount = calculate_commission(gross_amount, commission_rate)
    processing_fee = _percent_of(gross_amount, processing_fee_percent) + int(processing_fee_fixed) if gross_amount else 0
    platform_fee = int(platform_fee)
    net_amount = gross_amount - commission_amount - processing_fee - platform_fee

    if net_amount < 0:
        raise ValidationError("Fees exceed the gross amount")

    return {
        "gross_amount": gross_amount,
        "commission_rate": float(commission_rate),
        "commission_amount": commission_amount,
        "processing_fee": processing_fee,
        "platform_fee": platform_fee,
        "net_amount": net_amount,
    }


def calculate_with_configured_fees(gross_amount, commission_rate):
    config = current_app.config
    return calculate_seller_earnings(
        gross_amount,
        commission_rate,
        processing_fee_percent=config.get("PROCESSING_FEE_PERCENT", 0),
        processing_fee_fixed=config.get("PROCESSING_FEE_FIXED", 0),
        platform_fee=config.get("PLATFORM_FEE", 0),
    )


def get_applicable_rate(seller_id=None, category_id=None):
    """Seller rate beats category rate beats global rate beats the configured default."""
    candidates = []
    if seller_id:
        candidates.append(CommissionRate.query.filter_by(rate_type="seller", seller_id=seller_id, is_active=True))
    if category_id:
        candidates.append(CommissionRate.query.filter_by(rate_type="category", category_id=category_id, is_active=True))
    candidates.append(CommissionRate.query.filter_by(rate_type="global", is_active=True))

    for query in candidates:
        rate = query.order_by(CommissionRate.created_at.desc()).first()
        if rate:
            return float(rate.commission_percentage)

    default = current_app.config.get("DEFAULT_COMMISSION_RATE", 15.0)
    logger.debug("No commission rate configured, using default %s%%", default)
    return float(default)


def list_rates(rate_type=None, is_active=None):
    query = CommissionRate.query
    if rate_type:
        query = query.filter_by(rate_type=rate_type)
    if is_active is not None:
        query = query.filter_by(is_active=is_active)
    return query.order_by(CommissionRate.created_at.desc()).all()


def get_rate(rate_id):
    rate = db.session.get(CommissionRate, rate_id)
    if not rate:
        raise NotFoundError("Commission rate not found")
    return rate


def _check_percentage(value):
    try:
        percentage = float(value)
    except (TypeError, ValueError):
        raise ValidationError("Commission percentage must be a number")
    if not 0 <= percentage <= 100:
        raise ValidationError("Commission percentage must be between 0 and 100")
    return percentage


def create_rate(data):
    rate_type = data.get("rate_type")
    if rate_type not in RATE_TYPES:
        raise ValidationError("Invalid rate type. Must be: global, category, or seller")

    percentage = _check_percentage(data.get("commission_percentage"))
    seller_id = data.get("seller_id") or None
    category_id = data.get("category_id") or None

    if rate_type == "seller" and not seller_id:
        raise ValidationError("Seller ID is required for seller-specific rates")
    if rate_type == "category" and not category_id:
        raise ValidationError("Category ID is required for category-specific rates")

    rate = CommissionRate(
        rate_type=rate_type,
        commission_percentage=percentage,
        seller_id=seller_id if rate_type == "seller" else None,
        category_id=category_id if rate_type == "category" else None,
        is_active=bool(data.get("is_active", True)),
    )
    db.session.add(rate)
    db.session.commit()
    logger.info("Created %s commission rate %s at %s%%", rate_type, rate.id, percentage)
    return rate


def update_rate(rate_id, data):
    rate = get_rate(rate_id)
    if "commission_percentage" in data:
        rate.commission_percentage = _check_percentage(data["commission_percentage"])
    if "is_active" in data:
        rate.is_active = bool(data["is_active"])
    db.session.commit()
    return rate


def delete_rate(rate_id):
    rate = get_rate(rate_id)
    db.session.delete(rate)
    db.session.commit()
