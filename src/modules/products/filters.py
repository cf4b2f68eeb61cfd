import django_filters

from modules.products.models import Product, ProductCategory, ProductStatus


class ProductFilter(django_filters.FilterSet):
    name = django_filters.CharFilter(field_name="name", lookup_expr="icontains")
    category = django_filters.ChoiceFilter(choices=ProductCategory.choices)
    min_price = django_filters.NumberFilter(field_name="price", lookup_expr="gte")
    max_price = django_filters.NumberFilter(field_name="price", lookup_expr="lte")

    class Meta:
        model = Product
        fields = ["name", "category", "min_price", "max_price"]


class AdminProductFilter(ProductFilter):
    status = django_filters.ChoiceFilter(choices=ProductStatus.choices)

    class Meta:
        model = Product
        fields = ["name", "category", "min_price", "max_price", "status"]
