"""
Proof gallon arithmetic, spirit classification and temperature correction

Proof gallons = wine gallons x (proof / 100), where proof = abv x 2.
"""
from collections import namedtuple
from decimal import Decimal, ROUND_HALF_EVEN

from backend.core.utils import round2
from backend.inventory.models import GALLONS_PER_BARREL

ZERO = Decimal('0')

SpiritMetadata = namedtuple('SpiritMetadata', ['spirits_type', 'abv'])
ProductMetadata = namedtuple('ProductMetadata', ['product_type', 'spirits_type', 'abv'])

SPIRIT_CLASSIFICATIONS = {
    'bourbon': SpiritMetadata('under_190_proof', Decimal('62.5')),
    'whiskey': SpiritMetadata('under_190_proof', Decimal('62.5')),
    'rye': SpiritMetadata('under_190_proof', Decimal('62.5')),
    'gin': SpiritMetadata('under_190_proof', Decimal('70')),
    'vodka': SpiritMetadata('neutral_190_or_more', Decimal('95')),
    'neutral': SpiritMetadata('neutral_190_or_more', Decimal('95')),
    'tequila': SpiritMetadata('under_190_proof', Decimal('80')),
    'rum': SpiritMetadata('under_190_proof', Decimal('80')),
    'brandy': SpiritMetadata('wine', Decimal('40')),
    'wine': SpiritMetadata('wine', Decimal('20')),
}
DEFAULT_CLASSIFICATION = SpiritMetadata('under_190_proof', Decimal('80'))

# Rows: temperature bands (<40, 40-50, 50-60, 60, 60-70, 70-80, 80-90, >90 F)
# Columns: proof bands (<100, 100-120, 120-140, 140-160, 160-180, >=180)
TEMPERATURE_CORRECTION_TABLE = [
    [Decimal(f) for f in ('1.0150', '1.0180', '1.0200', '1.0220', '1.0240', '1.0260')],
    [Decimal(f) for f in ('1.0100', '1.0120', '1.0135', '1.0150', '1.0165', '1.0180')],
    [Decimal(f) for f in ('1.0050', '1.0060', '1.0068', '1.0075', '1.0083', '1.0090')],
    [Decimal('1.0000')] * 6,
    [Decimal(f) for f in ('0.9950', '0.9940', '0.9933', '0.9925', '0.9918', '0.9910')],
    [Decimal(f) for f in ('0.9900', '0.9880', '0.9865', '0.9850', '0.9835', '0.9820')],
    [Decimal(f) for f in ('0.9850', '0.9820', '0.9798', '0.9775', '0.9753', '0.9730')],
    [Decimal(f) for f in ('0.9800', '0.9760', '0.9730', '0.9700', '0.9670', '0.9640')],
]


def calculate_proof_gallons(wine_gallons, abv):
    """Proof gallons for a volume at an abv percentage; 0 for non-positive inputs"""
    wine_gallons = Decimal(str(wine_gallons))
    abv = Decimal(str(abv))
    if wine_gallons <= 0 or abv <= 0:
        return Decimal('0.00')
    proof = abv * 2
    return round2(wine_gallons * (proof / 100))


def wine_gallons_for_proof_gallons(proof_gallons, abv):
    proof = Decimal(str(abv)) * 2
    if proof <= 0:
        return Decimal('0.00')
    return round2(max(ZERO, Decimal(str(proof_gallons)) / (proof / 100)))


def classify_spirit(name):
    if not name or not name.strip():
        return DEFAULT_CLASSIFICATION
    return SPIRIT_CLASSIFICATIONS.get(name.strip().lower(), DEFAULT_CLASSIFICATION)


def determine_product_type(batch=None, order=None, barrel=None):
    spirit_type = order.spirit_type if order is not None else None
    if spirit_type is not None and spirit_type.name and spirit_type.name.strip():
        return spirit_type.name
    mash_bill = batch.mash_bill if batch is not None else None
    if mash_bill is not None and mash_bill.name and mash_bill.name.strip():
        return mash_bill.name
    if barrel is not None:
        return barrel.sku
    return f"Batch {batch.id if batch is not None else 0}"


def resolve_product_metadata(batch=None, order=None, barrel=None):
    """Product type plus TTB spirits class and nominal abv for a production record"""
    product_type = determine_product_type(batch, order, barrel)
    spirit_type = order.spirit_type if order is not None else None
    spirit_key = spirit_type.name if spirit_type is not None else product_type
    metadata = classify_spirit(spirit_key)
    return ProductMetadata(product_type, metadata.spirits_type, metadata.abv)


def barrels_to_wine_gallons(barrels):
    return Decimal(barrels) * GALLONS_PER_BARREL


def wine_gallons_to_barrels(wine_gallons):
    return round2(Decimal(str(wine_gallons)) / GALLONS_PER_BARREL)


def _temperature_band(temperature):
    if temperature < 40:
        return 0
    if temperature < 50:
        return 1
    if temperature < 60:
        return 2
    if temperature == 60:
        return 3
    if temperature <= 70:
        return 4
    if temperature <= 80:
        return 5
    if temperature <= 90:
        return 6
    return 7


def _proof_band(proof):
    for index, upper in enumerate((100, 120, 140, 160, 180)):
        if proof < upper:
            return index
    return 5


def get_correction_factor(temperature, proof):
    """Volume correction to 60F for a temperature (F) and proof"""
    temperature = Decimal(str(temperature))
    proof = Decimal(str(proof))
    return TEMPERATURE_CORRECTION_TABLE[_temperature_band(temperature)][_proof_band(proof)]


def calculate_gauge_proof_gallons(wine_gallons, proof, temperature):
    wine_gallons = Decimal(str(wine_gallons))
    proof = Decimal(str(proof))
    factor = get_correction_factor(temperature, proof)
    # Gauge readings round half to even
    return (wine_gallons * (proof / 100) * factor).quantize(Decimal('0.01'), rounding=ROUND_HALF_EVEN)
