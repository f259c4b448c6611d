from django.db import models
from decimal import Decimal


class Category(models.Model):
    """Product categories"""
    name = models.CharField(max_length=200, unique=True)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'categories'
        verbose_name_plural = 'categories'
        ordering = ['name']


class Brand(models.Model):
    """Product brands"""
    name = models.CharField(max_length=200, unique=True)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'brands'
        ordering = ['name']


class Size(models.Model):
    """Garment sizes, ordered by sort_order (XS, S, M, ...)"""
    name = models.CharField(max_length=20, unique=True)
    sort_order = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'sizes'
        ordering = ['sort_order', 'name']


class Color(models.Model):
    name = models.CharField(max_length=50, unique=True)
    hex_code = models.CharField(max_length=7, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'colors'
        ordering = ['name']


class Product(models.Model):
    """Product master; stock lives on its size/color variants"""
    SEASON_CHOICES = [
        ('ALL_SEASON', 'All Season'),
        ('SPRING_SUMMER', 'Spring/Summer'),
        ('FALL_WINTER', 'Fall/Winter'),
        ('RAINY', 'Rainy'),
        ('DRY', 'Dry'),
    ]
    GENDER_CHOICES = [
        ('MALE', 'Male'),
        ('FEMALE', 'Female'),
        ('UNISEX', 'Unisex'),
        ('KIDS', 'Kids'),
    ]

    name = models.CharField(max_length=200, db_index=True)
    sku = models.CharField(max_length=100, unique=True, db_index=True)
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    brand = models.ForeignKey(Brand, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    description = models.TextField(blank=True)
    season = models.CharField(max_length=20, choices=SEASON_CHOICES, default='ALL_SEASON')
    gender = models.CharField(max_length=20, choices=GENDER_CHOICES, default='UNISEX')
    cost_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    selling_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.sku})"

    def get_total_stock(self):
        return self.variants.aggregate(total=models.Sum('stock'))['total'] or 0

    class Meta:
        db_table = 'products'
        ordering = ['-created_at']


class ProductVariant(models.Model):
    """A sellable size/color combination of a product"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='variants')
    size = models.ForeignKey(Size, on_delete=models.PROTECT, related_name='variants')
    color = models.ForeignKey(Color, on_delete=models.PROTECT, related_name='variants')
    stock = models.IntegerField(default=0)
    min_stock = models.IntegerField(default=5)
    barcode = models.CharField(max_length=50, unique=True, blank=True, null=True, db_index=True)
    cost_price = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True,
                                     help_text="Overrides the product cost price when set")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.product.name} - {self.size.name}/{self.color.name}"

    @property
    def effective_cost_price(self):
        if self.cost_price is not None:
            return self.cost_price
        return self.product.cost_price

    @property
    def selling_price(self):
        return self.product.selling_price

    @property
    def is_low_stock(self):
        return self.stock <= self.min_stock

    class Meta:
        db_table = 'product_variants'
        unique_together = [['product', 'size', 'color']]
