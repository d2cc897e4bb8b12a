"""Display labels for Shopee order statuses and cancel reasons.

Lookups fall back to the raw key when a value has no label.
"""

from types import MappingProxyType

STATUS_LABELS = MappingProxyType({
    "UNPAID": "Chưa thanh toán",
    "READY_TO_SHIP": "Chờ lấy hàng",
    "PROCESSED": "Đã xử lý",
    "SHIPPED": "Đang giao",
    "TO_CONFIRM_RECEIVE": "Chờ xác nhận",
    "COMPLETED": "Hoàn thành",
    "TO_RETURN": "Trả hàng",
    "IN_CANCEL": "Đang hủy",
    "CANCELLED": "Đã hủy",
    "INVOICE_PENDING": "Chờ hóa đơn",
    "PENDING": "Đang xử lý",
})

CANCEL_REASON_LABELS = MappingProxyType({
    # Short codes
    "buyer_request": "Người mua yêu cầu",
    "out_of_stock": "Hết hàng",
    "customer_request": "Khách hàng yêu cầu",
    "unable_to_deliver": "Không thể giao hàng",
    "wrong_price": "Giá sai",
    "duplicate_order": "Đơn trùng",
    "seller_request": "Người bán yêu cầu",
    "system_cancel": "Hệ thống hủy",
    "other": "Lý do khác",
    "Others": "Lý do khác",

    # Shopee buyer-facing reasons
    "Modify existing order (colour, size, address, voucher, etc.)":
        "Muốn thay đổi đơn hàng (màu, size, địa chỉ, voucher...)",
    "Others / change of mind": "Đổi ý / Lý do khác",
    "Unpaid Order": "Đơn hàng chưa thanh toán",
    "Need to input / Change Voucher Code": "Cần nhập / Đổi mã giảm giá",
    "Need to change delivery address": "Cần thay đổi địa chỉ giao hàng",
    "Need to Change Delivery Address": "Cần thay đổi địa chỉ giao hàng",
    "Need to Modify Order": "Cần sửa đổi đơn hàng",
    "Failed Delivery": "Giao hàng thất bại",
    "Don't Want to Buy Anymore": "Không muốn mua nữa",
    "Found Cheaper Elsewhere": "Tìm được giá rẻ hơn ở nơi khác",
    "Other": "Lý do khác",
    "Seller is not responsive to my inquiries": "Người bán không phản hồi",
    "Payment Procedure too Troublesome": "Thủ tục thanh toán quá phức tạp",

    # Seller / system reasons
    "Buyer requested to cancel": "Người mua yêu cầu hủy",
    "Item out of stock": "Hết hàng",
    "Seller requested to cancel": "Người bán yêu cầu hủy",
    "System auto-cancel": "Hệ thống tự động hủy",
    "Payment timeout": "Hết thời gian thanh toán",
    "Shipping address issue": "Vấn đề địa chỉ giao hàng",
    "Product quality issue": "Vấn đề chất lượng sản phẩm",
    "Wrong product received": "Nhận sai sản phẩm",
    "Delivery delayed": "Giao hàng chậm trễ",
    "COD payment refused": "Từ chối thanh toán COD",
})


def status_label(status: str) -> str:
    return STATUS_LABELS.get(status, status)


def cancel_reason_label(reason: str) -> str:
    return CANCEL_REASON_LABELS.get(reason, reason)
