"""核心：异常定义"""
