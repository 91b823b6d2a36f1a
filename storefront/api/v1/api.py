from fastapi import APIRouter

from storefront.api.v1.routers import cart as cart_router
from storefront.api.v1.routers import promo as promo_router
from storefront.api.v1.routers import gift_cards as gift_cards_router
from storefront.api.v1.routers import orders as orders_router
from storefront.api.v1.routers import admin_coupons as admin_coupons_router
from storefront.api.v1.routers import admin_gift_cards as admin_gift_cards_router
from storefront.api.v1.routers import admin_promotions as admin_promotions_router
from storefront.api.v1.routers import admin_shipping as admin_shipping_router
from storefront.api.v1.routers import admin_settings as admin_settings_router

router = APIRouter()

# storefront routes
router.include_router(cart_router.router)
router.include_router(promo_router.router)
router.include_router(gift_cards_router.router)
router.include_router(orders_router.router)

# admin routes
router.include_router(admin_coupons_router.router)
router.include_router(admin_gift_cards_router.router)
router.include_router(admin_promotions_router.router)
router.include_router(admin_shipping_router.router)
router.include_router(admin_settings_router.router)
