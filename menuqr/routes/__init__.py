"""
API routers, mounted by menuqr.main:

    auth        /api/auth
    menu        /api/menu
    section     /api/section
    dish        /api/dish
    order       /api/order
    restaurant  /api/restaurant
    statistics  /api/statistics
"""
