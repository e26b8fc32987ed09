# ===================================
# promo_engine/api/v1/promotions.py
# ===================================
from typing import Any, List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query

from promo_engine.api.deps import (
    get_checkout_service,
    get_pagination_params,
    get_promotion_service,
)
from promo_engine.core.exceptions import (
    DuplicatePromotionCode,
    InvalidPromotionDefinition,
    PromotionError,
    PromotionInUse,
    PromotionNotFound,
)
from promo_engine.models.promotion import PromotionType
from promo_engine.schemas.evaluation import (
    CouponValidationResponse,
    EvaluateRequest,
    EvaluationResponse,
    RedeemRequest,
    RedemptionResponse,
    ValidateCouponRequest,
)
from promo_engine.schemas.promotion import (
    ProductPromotion,
    PromotionCreate,
    PromotionResponse,
    PromotionsListResponse,
    PromotionStatsResponse,
    PromotionUpdate,
    PromotionUsageRecord,
)
from promo_engine.services.checkout_service import CheckoutService
from promo_engine.services.promotion_service import PromotionService

router = APIRouter()


def _http_error(exc: PromotionError) -> HTTPException:
    """Traduit une erreur du domaine en réponse HTTP"""
    if isinstance(exc, PromotionNotFound):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, (InvalidPromotionDefinition, DuplicatePromotionCode, PromotionInUse)):
        status_code = status.HTTP_400_BAD_REQUEST
    else:
        status_code = status.HTTP_409_CONFLICT
    return HTTPException(status_code=status_code, detail=exc.message)


@router.get("/", response_model=PromotionsListResponse)
def list_promotions(
    pagination: tuple[int, int] = Depends(get_pagination_params),
    type: Optional[PromotionType] = Query(None, description="Filtrer par type"),
    is_active: Optional[bool] = Query(None, description="Filtrer par état"),
    search: Optional[str] = Query(None, description="Recherche sur nom, code, description"),
    promotion_service: PromotionService = Depends(get_promotion_service)
) -> Any:
    """
    Récupérer la liste des promotions avec filtres et pagination
    """
    skip, limit = pagination
    promotions, total = promotion_service.list_promotions(
        skip=skip, limit=limit, type=type, is_active=is_active, search=search
    )
    return PromotionsListResponse(data=promotions, total=total)


@router.post("/", response_model=PromotionResponse, status_code=status.HTTP_201_CREATED)
def create_promotion(
    promotion_data: PromotionCreate,
    promotion_service: PromotionService = Depends(get_promotion_service)
) -> Any:
    """Créer une nouvelle promotion"""
    try:
        promotion = promotion_service.create_promotion(promotion_data)
    except PromotionError as exc:
        raise _http_error(exc)

    return PromotionResponse(
        message="Promotion créée avec succès",
        data=promotion_service.to_detail(promotion)
    )


@router.get("/stats", response_model=PromotionStatsResponse)
def get_promotion_stats(
    promotion_service: PromotionService = Depends(get_promotion_service)
) -> Any:
    """Statistiques d'utilisation des promotions"""
    return PromotionStatsResponse(
        message="Statistiques récupérées avec succès",
        data=promotion_service.get_stats()
    )


@router.post("/evaluate", response_model=EvaluationResponse)
def evaluate_cart(
    request: EvaluateRequest,
    checkout_service: CheckoutService = Depends(get_checkout_service)
) -> Any:
    """
    Évaluer les promotions applicables à un panier (sans effet de bord)
    """
    result = checkout_service.evaluate(
        request.items,
        customer_id=request.customer_id,
        code=request.code,
        now=request.now,
    )
    return EvaluationResponse(
        message=f"{len(result.applied)} promotion(s) appliquée(s)",
        data=result
    )


@router.post("/validate-coupon", response_model=CouponValidationResponse)
def validate_coupon(
    request: ValidateCouponRequest,
    checkout_service: CheckoutService = Depends(get_checkout_service)
) -> Any:
    """Valider un code promo"""
    validation = checkout_service.validate_coupon(
        request.code, request.items, customer_id=request.customer_id
    )
    return CouponValidationResponse(message=validation.message, data=validation)


@router.post("/redeem", response_model=RedemptionResponse)
def redeem_promotion(
    request: RedeemRequest,
    checkout_service: CheckoutService = Depends(get_checkout_service)
) -> Any:
    """
    Encaisser une promotion après paiement.
    Un refus est renvoyé comme avertissement, la commande reste valide.
    """
    result = checkout_service.redeem(
        promotion_id=request.promotion_id,
        customer_id=request.customer_id,
        order_id=request.order_id,
        discount_amount=request.discount_amount,
        subtotal=request.subtotal,
        total=request.total,
    )
    return RedemptionResponse(message=result.message, data=result)


@router.get("/products/{product_id}", response_model=List[ProductPromotion])
def get_product_promotions(
    product_id: str,
    category_id: Optional[str] = Query(None, description="Catégorie du produit"),
    checkout_service: CheckoutService = Depends(get_checkout_service)
) -> Any:
    """Promotions affichées sur une fiche produit"""
    return checkout_service.get_product_promotions(product_id, category_id)


@router.get("/{promotion_id}", response_model=PromotionResponse)
def get_promotion(
    promotion_id: str,
    promotion_service: PromotionService = Depends(get_promotion_service)
) -> Any:
    """Récupérer une promotion avec son statut"""
    try:
        detail = promotion_service.get_promotion_detail(promotion_id)
    except PromotionError as exc:
        raise _http_error(exc)

    return PromotionResponse(message="Promotion récupérée avec succès", data=detail)


@router.get("/{promotion_id}/usages", response_model=List[PromotionUsageRecord])
def get_promotion_usages(
    promotion_id: str,
    limit: int = Query(100, ge=1, le=500, description="Nombre maximum d'utilisations"),
    promotion_service: PromotionService = Depends(get_promotion_service)
) -> Any:
    """Historique des utilisations, plus récentes d'abord"""
    try:
        return promotion_service.get_usage_history(promotion_id, limit)
    except PromotionError as exc:
        raise _http_error(exc)


@router.patch("/{promotion_id}", response_model=PromotionResponse)
def update_promotion(
    promotion_id: str,
    promotion_update: PromotionUpdate,
    promotion_service: PromotionService = Depends(get_promotion_service)
) -> Any:
    """
    Mettre à jour une promotion (seuls les champs fournis sont modifiés)
    """
    try:
        promotion = promotion_service.update_promotion(promotion_id, promotion_update)
    except PromotionError as exc:
        raise _http_error(exc)

    return PromotionResponse(
        message="Promotion mise à jour avec succès",
        data=promotion_service.to_detail(promotion)
    )


@router.post("/{promotion_id}/deactivate", response_model=PromotionResponse)
def deactivate_promotion(
    promotion_id: str,
    promotion_service: PromotionService = Depends(get_promotion_service)
) -> Any:
    """Désactiver une promotion sans la supprimer"""
    try:
        promotion = promotion_service.deactivate_promotion(promotion_id)
    except PromotionError as exc:
        raise _http_error(exc)

    return PromotionResponse(
        message="Promotion désactivée",
        data=promotion_service.to_detail(promotion)
    )


@router.delete("/{promotion_id}")
def delete_promotion(
    promotion_id: str,
    promotion_service: PromotionService = Depends(get_promotion_service)
) -> Any:
    """Supprimer une promotion jamais utilisée"""
    try:
        promotion_service.delete_promotion(promotion_id)
    except PromotionError as exc:
        raise _http_error(exc)

    return {"success": True, "message": "Promotion supprimée avec succès"}
