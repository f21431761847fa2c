from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models


class Vendor(models.Model):
    """Supplier / service provider for assets, repairs and purchase orders"""
    VENDOR_TYPE_CHOICES = [
        ('supplier', 'Supplier'),
        ('service', 'Service Provider'),
        ('manufacturer', 'Manufacturer'),
        ('distributor', 'Distributor'),
        ('other', 'Other'),
    ]

    company_name = models.CharField(max_length=200)
    vendor_code = models.CharField(max_length=50, unique=True, blank=True)
    contact_person = models.CharField(max_length=150, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=30, blank=True)
    street = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    zip_code = models.CharField(max_length=20, blank=True)
    country = models.CharField(max_length=100, blank=True, default='India')
    payment_terms = models.CharField(max_length=50, blank=True, default='Net 30')
    vendor_type = models.CharField(max_length=20, choices=VENDOR_TYPE_CHOICES, default='supplier')
    rating = models.DecimalField(
        max_digits=3, decimal_places=1, default=0,
        validators=[MinValueValidator(0), MaxValueValidator(5)]
    )
    is_active = models.BooleanField(default=True)
    categories = models.JSONField(default=list, blank=True)
    gst_number = models.CharField(max_length=20, blank=True)
    pan_number = models.CharField(max_length=20, blank=True)
    bank_details = models.JSONField(default=dict, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.company_name

    def save(self, *args, **kwargs):
        if not self.vendor_code:
            self.vendor_code = self.generate_vendor_code()
        super().save(*args, **kwargs)

    @classmethod
    def generate_vendor_code(cls):
        """Next free VEN-NNNN code"""
        number = cls.objects.count() + 1
        code = f"VEN-{number:04d}"
        while cls.objects.filter(vendor_code=code).exists():
            number += 1
            code = f"VEN-{number:04d}"
        return code

    @property
    def address(self):
        return {
            'street': self.street,
            'city': self.city,
            'state': self.state,
            'zip_code': self.zip_code,
            'country': self.country,
        }

    class Meta:
        db_table = 'vendors'
        ordering = ['company_name']
        indexes = [
            models.Index(fields=['is_active'], name='idx_vendor_active'),
            models.Index(fields=['company_name'], name='idx_vendor_name'),
        ]
